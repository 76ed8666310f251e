"""
Test Suite for the Settlement Reconciler

Test Structure:
- fixtures/: Sample notification emails and message builders
- unit/: Unit tests mirroring the src/ package structure
- integration/: Store, mailbox, configuration and CLI workflows

All amounts, references and account numbers in the test data are synthetic.
"""

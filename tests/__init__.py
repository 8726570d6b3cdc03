"""
Statboard Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests over the in-memory store and mocks
- tests/integration/   : Integration tests against a Redis testcontainer

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test ranking and window logic
- Integration tests: Slower, test real sorted-set ordering and transactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

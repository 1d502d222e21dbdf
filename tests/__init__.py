"""
RhymeRumble Test Suite
======================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks (no external dependencies)
- tests/unit/domain/   : Pure domain rules (ranking, friendship, session)
- tests/integration/   : PostgreSQL via testcontainers (``pytest -m integration``)

Conventions
-----------
- Classes are tagged with markers (unit, domain, service, integration, database)
- Arrange, Act, Assert where a test has more than one step
"""

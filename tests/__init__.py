"""
ranksync Test Suite
===================

Test Organization
-----------------
- tests/unit/          : Fast tests against in-memory store and Redis fakes
- tests/integration/   : Tests against real PostgreSQL and Redis (testcontainers),
                         enabled with RANKSYNC_INTEGRATION=1

Testing Philosophy
------------------
- Unit tests exercise the real projection, loader and engine over fakes
- Integration tests cover the SQL and Redis commands the fakes stand in for
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

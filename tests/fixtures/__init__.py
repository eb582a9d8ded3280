# Test Fixtures Package
# Provides factory functions for seeding realistic test data

from .auth import TEST_SECRET, auth_headers
from .patients import PatientFactory

__all__ = ["PatientFactory", "TEST_SECRET", "auth_headers"]

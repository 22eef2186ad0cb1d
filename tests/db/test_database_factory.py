"""Test suite for the database factory.

Tests database factory and registry functionality including:
- Database registration and unregistration
- Configured default type
- Error handling
"""

import tempfile
from pathlib import Path

import pytest

from dbhooks.config import DbHooksConfig, set_config
from dbhooks.db.database import Database
from dbhooks.db.factory import (
    get_database,
    list_available_databases,
    register_database,
    unregister_database,
)
from dbhooks.db.jsondb import JsonDB
from dbhooks.db.memory import MemoryDB
from dbhooks.exceptions import InvalidConfigurationError, ValidationError


class TestDatabaseFactory:
    """Test database factory functionality."""

    def setup_method(self):
        """Set up test environment."""
        unregister_database("mock")

    def teardown_method(self):
        unregister_database("mock")

    def _create_mock_database_class(self):
        """Create a real database class for testing."""

        class MockDatabase(Database):
            def __init__(self, **kwargs):
                self.options = kwargs

            async def save(self, collection, data):
                return data

            async def get(self, collection, id):
                return None

            async def delete(self, collection, id):
                pass

            async def find(self, collection, query):
                return []

            async def clear(self, collection=None):
                pass

        return MockDatabase

    def test_builtin_databases_are_registered(self):
        """Test that memory and json backends are available."""
        available = list_available_databases()

        assert available["memory"] is MemoryDB
        assert available["json"] is JsonDB

    def test_default_type_comes_from_config(self):
        """Test that the configured type is used by default."""
        set_config(DbHooksConfig(db_type="memory"))
        assert isinstance(get_database(), MemoryDB)

    def test_json_database_uses_configured_path(self):
        """Test the json configurator."""
        with tempfile.TemporaryDirectory() as tmpdir:
            set_config(DbHooksConfig(db_type="json", jsondb_path=tmpdir, jsondb_cache_size=7))
            db = get_database()

            assert isinstance(db, JsonDB)
            assert db._cache_size == 7
            assert db.base_path == Path(tmpdir).resolve()

    def test_register_and_get_custom_database(self):
        """Test registering a custom backend."""
        mock_class = self._create_mock_database_class()
        register_database("mock", mock_class)

        db = get_database("mock", option=1)
        assert isinstance(db, mock_class)
        assert db.options == {"option": 1}

    def test_register_with_configurator(self):
        """Test registering a backend with a configurator."""
        mock_class = self._create_mock_database_class()
        register_database("mock", mock_class, lambda kwargs: mock_class(flag=True))

        assert get_database("mock").options == {"flag": True}

    def test_register_duplicate(self):
        """Test that a type cannot be registered twice."""
        mock_class = self._create_mock_database_class()
        register_database("mock", mock_class)

        with pytest.raises(InvalidConfigurationError):
            register_database("mock", mock_class)

    def test_register_invalid_class(self):
        """Test that only Database subclasses are accepted."""
        with pytest.raises(ValidationError):
            register_database("mock", dict)

    def test_unregister(self):
        """Test removing a backend."""
        register_database("mock", self._create_mock_database_class())
        unregister_database("mock")

        assert "mock" not in list_available_databases()
        with pytest.raises(InvalidConfigurationError):
            get_database("mock")

    def test_unknown_type(self):
        """Test requesting an unknown backend."""
        with pytest.raises(InvalidConfigurationError, match="Available types"):
            get_database("nonexistent")

    def test_failing_configuration(self):
        """Test that configuration errors are wrapped."""
        with pytest.raises(InvalidConfigurationError, match="Failed to configure"):
            get_database("memory", unexpected=True)

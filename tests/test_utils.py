"""
Tests for connection string parsing and artifact naming.
"""
from datetime import datetime

import pytest

from backup_runner.models import DatabaseEngine
from backup_runner.utils import build_artifact_filename, format_timestamp, parse_target


class TestParseTarget:
    """Tests for parse_target"""

    @pytest.mark.parametrize("uri, engine, port", [
        ("postgresql://alice:pw@pg.local:5432/orders", DatabaseEngine.POSTGRESQL, 5432),
        ("mongodb://alice:pw@mongo.local:27017/orders", DatabaseEngine.MONGODB, 27017),
        ("mysql://alice:pw@my.local:3306/orders", DatabaseEngine.MYSQL, 3306),
    ])
    def test_supported_schemes(self, uri, engine, port):
        target = parse_target(uri)

        assert target.engine == engine
        assert target.scheme == engine.value
        assert target.database == "orders"
        assert target.host.endswith(".local")
        assert target.port == port
        assert target.username == "alice"
        assert target.password == "pw"
        assert target.uri == uri

    def test_unknown_scheme(self):
        target = parse_target("ftp://h/db")

        assert target.engine == DatabaseEngine.UNKNOWN
        assert target.scheme == "ftp"
        assert target.database == "db"

    def test_missing_port_and_credentials(self):
        target = parse_target("postgresql://h/db")

        assert target.port is None
        assert target.username == ""
        assert target.password == ""

    def test_percent_encoded_userinfo_is_decoded(self):
        target = parse_target("mysql://bob:p%40ss%3Aword@h:3306/db")

        assert target.password == "p@ss:word"

    def test_query_string_is_not_part_of_database(self):
        target = parse_target("mongodb://u:p@h:27017/app?authSource=admin")

        assert target.database == "app"

    def test_multi_host_has_no_port(self):
        target = parse_target("mongodb://u:p@h1:27017,h2:27017/app")

        assert target.port is None
        assert target.database == "app"

    def test_no_scheme_raises(self):
        with pytest.raises(ValueError):
            parse_target("just-a-host/db")

    def test_display_uri_masks_password(self):
        target = parse_target("postgresql://u:topsecret@h:5432/db")

        assert target.display_uri == "postgresql://u:<REDACTED>@h:5432/db"
        assert "topsecret" not in target.display_uri

    def test_target_is_immutable(self):
        target = parse_target("postgresql://h/db")

        with pytest.raises(Exception):
            target.database = "other"


class TestArtifactFilename:
    """Tests for build_artifact_filename and format_timestamp"""

    def test_format(self):
        timestamp = format_timestamp(datetime(2024, 3, 9, 7, 5, 1))

        assert timestamp == "2024-03-09_07:05:01"
        assert build_artifact_filename("mysql", timestamp, "shop", "db.local") == (
            "backup-mysql-2024-03-09_07:05:01-shop-db.local.tar.gz"
        )

    def test_deterministic(self):
        first = build_artifact_filename("postgresql", "2024-01-01_00:00:00", "db", "h")
        second = build_artifact_filename("postgresql", "2024-01-01_00:00:00", "db", "h")

        assert first == second

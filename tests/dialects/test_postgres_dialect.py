from cascadeorm.dialects import PostgresDialect


def test_postgres_dialect_quotes_identifiers():
    dialect = PostgresDialect()
    assert dialect.quote_identifier('table"name') == '"table""name"'
    assert dialect.format_table("public.users") == '"public"."users"'
    assert dialect.format_table("users") == '"users"'


def test_postgres_dialect_placeholder_and_returning():
    dialect = PostgresDialect()
    assert dialect.parameter_placeholder() == "%s"
    assert dialect.capabilities.supports_returning is True
    assert dialect.identity_type == "SERIAL"

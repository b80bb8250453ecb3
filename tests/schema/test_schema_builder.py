import logging

from cascadeorm.core import ForeignKey, IntegerField, ManyToManyField, Model, StringField
from cascadeorm.dialects import PostgresDialect, SQLiteDialect
from cascadeorm.persistence import ModelMetadataProvider
from cascadeorm.schema import SchemaBuilder

dialect = SQLiteDialect()
builder = SchemaBuilder(dialect)


class Reader(Model):
    name = StringField(nullable=False)
    age = IntegerField(default=0)


class Club(Model):
    name = StringField(nullable=False)
    members = ManyToManyField(Reader)


class Loan(Model):
    reader = ForeignKey(Reader)
    title = StringField(unique=True)


class Vessel(Model):
    name = StringField()


class Ferry(Vessel):
    capacity = IntegerField(nullable=False)


class Payment(Model):
    amount = IntegerField(nullable=False)

    class Meta:
        inheritance = "joined"


class CardPayment(Payment):
    last4 = StringField()


class Seat(Model):
    row = IntegerField(primary_key=True)
    number = IntegerField(primary_key=True)


def test_create_table_sql():
    sql = builder.create_table_sql(Reader)
    expected = 'CREATE TABLE IF NOT EXISTS "reader" ("id" INTEGER NOT NULL PRIMARY KEY, "name" TEXT NOT NULL, "age" INTEGER)'
    assert sql == expected


def test_foreign_key_and_unique_columns():
    sql = builder.create_table_sql(Loan)
    assert '"reader_id" INTEGER NOT NULL' in sql
    assert '"title" TEXT UNIQUE' in sql
    assert sql.endswith('FOREIGN KEY ("reader_id") REFERENCES "reader" ("id"))')


def test_postgres_identity_column():
    sql = SchemaBuilder(PostgresDialect()).create_table_sql(Reader)
    assert sql.startswith(f'CREATE TABLE IF NOT EXISTS "reader" ("id" {PostgresDialect().identity_type} NOT NULL PRIMARY KEY')


def test_composite_identifier_table():
    sql = builder.create_table_sql(Seat)
    expected = (
        'CREATE TABLE IF NOT EXISTS "seat" ("row" INTEGER NOT NULL, "number" INTEGER NOT NULL, '
        'PRIMARY KEY ("row", "number"))'
    )
    assert sql == expected


def test_single_table_hierarchy_shares_one_table():
    sql = builder.create_table_sql(Vessel)
    expected = (
        'CREATE TABLE IF NOT EXISTS "vessel" ("id" INTEGER NOT NULL PRIMARY KEY, "name" TEXT, '
        '"capacity" INTEGER, "discr" TEXT NOT NULL)'
    )
    assert sql == expected
    assert builder.create_table_sql(Ferry) == sql
    assert builder.create_all_sql([Vessel, Ferry]) == [sql]


def test_joined_hierarchy_tables():
    root_sql = builder.create_table_sql(Payment)
    assert root_sql == (
        'CREATE TABLE IF NOT EXISTS "payment" ("id" INTEGER NOT NULL PRIMARY KEY, '
        '"amount" INTEGER NOT NULL, "discr" TEXT NOT NULL)'
    )
    child_sql = builder.create_table_sql(CardPayment)
    assert child_sql == (
        'CREATE TABLE IF NOT EXISTS "card_payment" ("id" INTEGER NOT NULL PRIMARY KEY, "last4" TEXT, '
        'FOREIGN KEY ("id") REFERENCES "payment" ("id") ON DELETE CASCADE)'
    )


def test_join_table_sql():
    association = ModelMetadataProvider().association(Club, "members")
    sql = builder.create_join_table_sql(association)
    assert sql == (
        'CREATE TABLE IF NOT EXISTS "club_members" ("club_id" INTEGER NOT NULL, "reader_id" INTEGER NOT NULL, '
        'PRIMARY KEY ("club_id", "reader_id"), '
        'FOREIGN KEY ("club_id") REFERENCES "club" ("id") ON DELETE CASCADE, '
        'FOREIGN KEY ("reader_id") REFERENCES "reader" ("id") ON DELETE CASCADE)'
    )


def test_create_all_orders_referenced_tables_first():
    statements = builder.create_all_sql([Loan, Club, CardPayment, Reader, Payment])
    tables = [statement.split('"')[1] for statement in statements]
    assert tables.index("reader") < tables.index("loan")
    assert tables.index("reader") < tables.index("club_members")
    assert tables.index("club") < tables.index("club_members")
    assert tables.index("payment") < tables.index("card_payment")
    assert tables[-1] == "club_members"


def test_create_all_executes_statements():
    executed = []

    class RecordingAdapter:
        def execute(self, sql, params=None):
            executed.append(sql)

    builder.create_all(RecordingAdapter(), [Reader, Loan])
    assert len(executed) == 2
    assert '"reader"' in executed[0]


def test_drop_table_sql():
    sql = builder.drop_table_sql(Reader)
    assert sql == 'DROP TABLE IF EXISTS "reader"'


def test_drop_table_logs_warning(caplog):
    caplog.set_level(logging.WARNING, logger="cascadeorm.schema.builder")
    local_builder = SchemaBuilder(SQLiteDialect())
    local_builder.drop_table_sql(Reader)
    assert any("DROP TABLE generated" in record.message for record in caplog.records)

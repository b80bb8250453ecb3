from cascadeorm.adapters import ConnectionConfig, SQLiteAdapter
from cascadeorm.core import IntegerField, Model, StringField
from cascadeorm.dialects import SQLiteDialect
from cascadeorm.persistence import Session
from cascadeorm.schema import SchemaBuilder


class Vehicle(Model):
    name = StringField(nullable=False)


class Truck(Vehicle):
    payload = IntegerField()

    class Meta:
        discriminator_value = "truck"


class Account(Model):
    owner = StringField(nullable=False)

    class Meta:
        inheritance = "joined"


class SavingsAccount(Account):
    rate = IntegerField(nullable=False)


MODELS = [Vehicle, Truck, Account, SavingsAccount]


def open_session(tmp_path, name: str) -> Session:
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / name}")
    session = Session(adapter, connection_config=config)
    SchemaBuilder(SQLiteDialect()).create_all(session.adapter, MODELS)
    return session


def test_single_table_rows_carry_discriminator(tmp_path):
    session = open_session(tmp_path, "single.db")
    car = Vehicle(name="Car")
    truck = Truck(name="Hauler", payload=12)
    with session.transaction():
        session.save(car)
        session.save(truck)

    rows = session.execute('SELECT name, payload, discr FROM "vehicle" ORDER BY id').fetchall()
    assert [(row["name"], row["payload"], row["discr"]) for row in rows] == [
        ("Car", None, "Vehicle"),
        ("Hauler", 12, "truck"),
    ]
    session.close()


def test_single_table_loads_concrete_type(tmp_path):
    session = open_session(tmp_path, "single_load.db")
    car = Vehicle(name="Car")
    truck = Truck(name="Hauler", payload=12)
    with session.transaction():
        session.save(car)
        session.save(truck)
    session.clear()

    loaded = session.get(Vehicle, truck.id)
    assert type(loaded) is Truck
    assert loaded.payload == 12
    assert session.get(Truck, truck.id) is loaded
    session.clear()
    assert session.get(Truck, car.id) is None
    session.close()


def test_joined_subclass_spans_two_tables(tmp_path):
    session = open_session(tmp_path, "joined.db")
    account = SavingsAccount(owner="Ana", rate=3)
    with session.transaction():
        session.save(account)

    root = session.execute('SELECT id, owner, discr FROM "account"').fetchone()
    child = session.execute('SELECT id, rate FROM "savings_account"').fetchone()
    assert (root["id"], root["owner"], root["discr"]) == (account.id, "Ana", "SavingsAccount")
    assert (child["id"], child["rate"]) == (account.id, 3)
    session.close()


def test_joined_subclass_load_update_and_delete(tmp_path):
    session = open_session(tmp_path, "joined_cycle.db")
    plain = Account(owner="Bo")
    savings = SavingsAccount(owner="Ana", rate=3)
    with session.transaction():
        session.save(plain)
        session.save(savings)
    session.clear()

    loaded = session.get(Account, savings.id)
    assert type(loaded) is SavingsAccount
    assert (loaded.owner, loaded.rate) == ("Ana", 3)
    assert session.get(SavingsAccount, plain.id) is None

    loaded.owner = "Ana Maria"
    loaded.rate = 4
    session.commit()
    assert session.execute('SELECT owner FROM "account" WHERE id = ?', (loaded.id,)).fetchone()[0] == "Ana Maria"
    assert session.execute('SELECT rate FROM "savings_account" WHERE id = ?', (loaded.id,)).fetchone()[0] == 4

    with session.transaction():
        session.delete(loaded)
    assert session.execute('SELECT COUNT(*) FROM "savings_account"').fetchone()[0] == 0
    assert session.execute('SELECT COUNT(*) FROM "account"').fetchone()[0] == 1
    session.close()

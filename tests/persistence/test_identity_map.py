from cascadeorm.core import IntegerField, Model, StringField
from cascadeorm.persistence import IdentityMap, ModelMetadataProvider, identity_hash


class Planet(Model):
    name = StringField()


class GasGiant(Planet):
    rings = IntegerField(default=0)


class Orbit(Model):
    star = IntegerField(primary_key=True)
    slot = IntegerField(primary_key=True)


def make_map():
    return IdentityMap(ModelMetadataProvider())


def test_identity_hash_joins_values():
    assert identity_hash((1,)) == "1"
    assert identity_hash((3, "b")) == "3 b"
    assert identity_hash((1, None)) == ""
    assert identity_hash(()) == ""


def test_register_and_get():
    identity_map = make_map()
    planet = Planet(id=1, name="Mars")
    assert identity_map.register(planet)
    assert identity_map.get(Planet, 1) is planet
    assert planet in identity_map
    assert len(identity_map) == 1


def test_register_rejects_missing_identifier_and_duplicates():
    identity_map = make_map()
    assert not identity_map.register(Planet(name="Unnamed"))
    first = Planet(id=2, name="Venus")
    assert identity_map.register(first)
    assert not identity_map.register(first)
    assert not identity_map.register(Planet(id=2, name="Impostor"))
    assert identity_map.get(Planet, 2) is first


def test_subclasses_share_root_key_space():
    identity_map = make_map()
    giant = GasGiant(id=5, name="Jupiter")
    identity_map.register(giant)
    assert identity_map.get(Planet, 5) is giant
    assert identity_map.get(GasGiant, 5) is giant
    assert not identity_map.register(Planet(id=5, name="Clash"))


def test_lookup_by_subclass_ignores_other_concrete_types():
    identity_map = make_map()
    identity_map.register(Planet(id=6, name="Earth"))
    assert identity_map.get(GasGiant, 6) is None


def test_composite_identifier():
    identity_map = make_map()
    orbit = Orbit(star=1, slot=3)
    identity_map.register(orbit)
    assert identity_map.get(Orbit, (1, 3)) is orbit
    assert identity_map.get(Orbit, [1, 3]) is orbit
    assert identity_map.lookup(Orbit, "1 3") is orbit


def test_remove_uses_registered_key():
    identity_map = make_map()
    planet = Planet(id=7, name="Saturn")
    identity_map.register(planet)
    planet.id = 70
    assert identity_map.remove(planet)
    assert identity_map.get(Planet, 7) is None
    assert not identity_map.remove(planet)

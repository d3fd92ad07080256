# tests/contracts/test_attribute_contracts.py
"""Tests for attribute values, dependencies, results and errors."""

import pytest


class TestAttributeValues:
    """Wrapping raw source values."""

    def test_none_becomes_null_value(self) -> None:
        from attresolver.contracts import NULL_VALUE, to_attribute_value

        assert to_attribute_value(None) == NULL_VALUE

    def test_empty_string_becomes_zero_length_value(self) -> None:
        from attresolver.contracts import ZERO_LENGTH_VALUE, to_attribute_value

        assert to_attribute_value("") == ZERO_LENGTH_VALUE

    def test_scalar_types(self) -> None:
        from attresolver.contracts import ByteValue, OpaqueValue, StringValue, to_attribute_value

        assert to_attribute_value("member") == StringValue("member")
        assert to_attribute_value(b"\x01\x02") == ByteValue(b"\x01\x02")
        assert to_attribute_value(42) == StringValue("42")
        assert to_attribute_value(True) == StringValue("True")
        assert isinstance(to_attribute_value(object()), OpaqueValue)

    def test_existing_values_pass_through(self) -> None:
        from attresolver.contracts import ScopedStringValue, to_attribute_value

        value = ScopedStringValue("jdoe", "example.org")
        assert to_attribute_value(value) is value

    def test_display(self) -> None:
        from attresolver.contracts import ByteValue, ScopedStringValue

        assert ScopedStringValue("jdoe", "example.org").display() == "jdoe@example.org"
        assert ByteValue(b"\xff").display() == "ff"


class TestIdPAttribute:
    """IdPAttribute construction."""

    def test_of_wraps_values_in_order(self) -> None:
        from attresolver.contracts import NULL_VALUE, IdPAttribute, StringValue

        attribute = IdPAttribute.of("mail", ["a@example.org", None, "b@example.org"])

        assert attribute.values == (StringValue("a@example.org"), NULL_VALUE, StringValue("b@example.org"))

    def test_duplicates_are_kept(self) -> None:
        from attresolver.contracts import IdPAttribute

        assert len(IdPAttribute.of("x", ["a", "a"]).values) == 2

    def test_empty_id_rejected(self) -> None:
        from attresolver.contracts import IdPAttribute

        with pytest.raises(ValueError, match="non-empty"):
            IdPAttribute("")

    def test_with_id(self) -> None:
        from attresolver.contracts import IdPAttribute

        renamed = IdPAttribute.of("uid", ["jdoe"]).with_id("principal")

        assert renamed.id == "principal"
        assert renamed.display_values() == ["jdoe"]


class TestDependency:
    """Parsing dependency declarations."""

    def test_plain_id(self) -> None:
        from attresolver.contracts import Dependency

        assert Dependency.parse("ldap") == Dependency("ldap")

    def test_dotted_attribute(self) -> None:
        from attresolver.contracts import Dependency

        dep = Dependency.parse("ldap.eduPersonAffiliation")

        assert dep.plugin_id == "ldap"
        assert dep.attribute_id == "eduPersonAffiliation"
        assert str(dep) == "ldap.eduPersonAffiliation"

    def test_mapping_form(self) -> None:
        from attresolver.contracts import Dependency

        assert Dependency.parse({"plugin": "ldap", "attribute": "mail"}) == Dependency("ldap", "mail")

    @pytest.mark.parametrize("raw", ["ldap.", "", {"attribute": "mail"}, {"plugin": "x", "extra": 1}, 42])
    def test_malformed_rejected(self, raw: object) -> None:
        from attresolver.contracts import Dependency

        with pytest.raises(ValueError):
            Dependency.parse(raw)  # type: ignore[arg-type]


class TestPluginResult:
    """PluginResult invariants and factories."""

    def test_resolved_drops_valueless_attributes(self) -> None:
        from attresolver.contracts import IdPAttribute, PluginResult, ResolutionStatus

        result = PluginResult.resolved({"a": IdPAttribute.of("a", ["1"]), "b": IdPAttribute("b")})

        assert result.status == ResolutionStatus.RESOLVED
        assert list(result.attributes) == ["a"]

    def test_resolved_with_nothing_is_empty(self) -> None:
        from attresolver.contracts import IdPAttribute, PluginResult, ResolutionStatus

        result = PluginResult.resolved({"b": IdPAttribute("b")})

        assert result.status == ResolutionStatus.EMPTY
        assert not result.has_values

    def test_attributes_are_read_only(self) -> None:
        from attresolver.contracts import IdPAttribute, PluginResult

        result = PluginResult.of_attribute(IdPAttribute.of("a", ["1"]))

        with pytest.raises(TypeError):
            result.attributes["b"] = IdPAttribute.of("b", ["2"])  # type: ignore[index]

    def test_failed_carries_reason(self) -> None:
        from attresolver.contracts import NoResultError, PluginResult

        result = PluginResult.failed(NoResultError("nothing found"))

        assert result.is_failed
        assert result.reason == {"error": "nothing found", "type": "NoResultError"}

    def test_failed_requires_error(self) -> None:
        from attresolver.contracts import PluginResult, ResolutionStatus

        with pytest.raises(ValueError, match="reason and error"):
            PluginResult(status=ResolutionStatus.FAILED)

    def test_skipped_cannot_carry_attributes(self) -> None:
        from attresolver.contracts import IdPAttribute, PluginResult, ResolutionStatus

        with pytest.raises(ValueError, match="must not carry attributes"):
            PluginResult(status=ResolutionStatus.SKIPPED, attributes={"a": IdPAttribute.of("a", ["1"])})


class TestErrors:
    """Error taxonomy and attribution."""

    def test_families_are_disjoint(self) -> None:
        from attresolver.contracts import CircularDependencyError, ConfigurationError, NoResultError, ResolutionError

        assert issubclass(CircularDependencyError, ConfigurationError)
        assert not issubclass(CircularDependencyError, ResolutionError)
        assert not issubclass(NoResultError, ConfigurationError)

    def test_cycle_message(self) -> None:
        from attresolver.contracts import CircularDependencyError

        error = CircularDependencyError(["a", "b", "a"])

        assert error.cycle == ["a", "b", "a"]
        assert str(error) == "Circular dependency detected: a -> b -> a"

    def test_first_attribution_wins(self) -> None:
        from attresolver.contracts import ResolutionError

        error = ResolutionError("boom")
        error.attributed_to("ldap", ["affiliation", "ldap"])
        error.attributed_to("affiliation", ["affiliation"])

        assert error.plugin_id == "ldap"
        assert str(error) == "Plugin 'ldap' failed (via affiliation -> ldap): boom"
        assert error.to_reason()["chain"] == ["affiliation", "ldap"]

    def test_dependency_failed_names_dependency(self) -> None:
        from attresolver.contracts import DependencyFailedError

        error = DependencyFailedError("ldap")

        assert error.dependency_id == "ldap"
        assert "ldap" in str(error)

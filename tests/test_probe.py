import pytest

from heapmeter.internals.errors import InvalidConfigurationError
from heapmeter.layout.probe import (
    Environment,
    environment_overrides,
    probe_environment,
    triple_pointer_width,
)


@pytest.mark.parametrize("triple, width", [
    ("x86_64-pc-linux-gnu", 64),
    ("arm64-apple-darwin25.0.0", 64),
    ("i686-pc-windows-msvc", 32),
    ("armv7-unknown-linux-gnueabihf", 32),
    ("wasm32", 32),
])
def test_triple_pointer_width(triple, width):
    assert triple_pointer_width(triple) == width


def test_overrides_accept_dashes_and_strings():
    env = Environment().with_overrides({"narrow-references": "true", "alignment_quantum": "16"})
    assert env.narrow_references is True
    assert env.alignment_quantum == 16


def test_unknown_override_is_rejected():
    with pytest.raises(InvalidConfigurationError) as info:
        Environment().with_overrides({"bogus": 1})
    assert info.value.code == "HM0402"
    assert "bogus" in str(info.value)


def test_bad_override_value_names_the_option():
    with pytest.raises(InvalidConfigurationError) as info:
        Environment().with_overrides({"alignment_quantum": "wide"})
    assert info.value.code == "HM0401"
    assert "alignment_quantum" in str(info.value)

    with pytest.raises(InvalidConfigurationError):
        Environment().with_overrides({"contended_enabled": "maybe"})


def test_environment_variables_are_collected():
    environ = {
        "HEAPMETER_NARROW_REFERENCES": "1",
        "HEAPMETER_NOT_A_FIELD": "x",
        "PATH": "/usr/bin",
    }
    assert environment_overrides(environ) == {"narrow_references": "1"}


def test_probe_applies_configuration_then_variables():
    env = probe_environment(
        overrides={"narrow_references": True, "alignment_quantum": 16},
        environ={"HEAPMETER_ALIGNMENT_QUANTUM": "32"},
    )
    assert env.pointer_width in (32, 64)
    assert env.narrow_references is True
    assert env.alignment_quantum == 32


def test_probe_defaults_describe_the_host():
    env = probe_environment(environ={})
    assert env.post_reform_layout
    assert not env.narrow_references

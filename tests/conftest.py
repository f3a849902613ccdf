import pytest

from heapmeter.config import MeterConfig
from heapmeter.layout.probe import Environment
from heapmeter.layout.spec import LayoutSpecification
from heapmeter.meter import Meter

# 64-bit runtime with narrow references: header 12, array header 16, reference 4
NARROW_ENV = Environment(pointer_width=64, narrow_references=True, contended_restricted=False)
NARROW = LayoutSpecification.from_environment(NARROW_ENV)

# 64-bit runtime with wide references: header 16, array header 24, reference 8
WIDE_ENV = Environment(pointer_width=64)
WIDE = LayoutSpecification.from_environment(WIDE_ENV)


def make_meter(env=NARROW_ENV, order=("layout-computed",), native_sizer=None,
               offset_accessor=None, listener_factory=None, **options):
    config = MeterConfig(strategy_order=order, **options)
    return Meter(config, environment=env, native_sizer=native_sizer,
                 offset_accessor=offset_accessor, listener_factory=listener_factory)


@pytest.fixture
def meter():
    return make_meter()

import pytest
from chatstack.UTILS.string_interpolation import EnvironmentInterpolator

def test_interpolate_forms():
    context = {'A': 'x', 'EMPTY': ''}
    template = '${A} ${EMPTY:-fallback} ${A:+set} ${MISSING:+set} $$HOME'
    assert EnvironmentInterpolator.interpolate(template, context) == 'x fallback set  $HOME'

def test_strict_and_lenient():
    with pytest.raises(KeyError):
        EnvironmentInterpolator.interpolate('${MISSING}', {})
    assert EnvironmentInterpolator.interpolate('[${MISSING}]', {}, strict=False) == '[]'

import random
import string
import pytest
from chatstack.errors import StackConfigError
from chatstack.PARSERS.stack_parser import StackParser
from chatstack.UTILS.string_interpolation import EnvironmentInterpolator

def random_string(rng, length):
    return ''.join(rng.choice(string.printable) for _ in range(length))

def test_fuzz_stack_parser():
    rng = random.Random(1234)
    parser = StackParser(context={})
    for _ in range(200):
        content = random_string(rng, rng.randint(0, 500))
        # Junk must be rejected as a stack error, never crash with anything else
        try:
            parser.parse_from_string(content)
        except StackConfigError:
            pass

def test_fuzz_stack_parser_structured():
    rng = random.Random(99)
    parser = StackParser(context={})
    values = ['', '1', '-3', 'x', '[]', '{}', '[a, b]', '{order: 0}', 'null', '"${X:-y}"']
    for _ in range(200):
        key = rng.choice(['groups', 'network', 'repository', 'volumes', 'poll_interval', 'required_ports'])
        content = f"{key}: {rng.choice(values)}\n"
        try:
            parser.parse_from_string(content)
        except StackConfigError:
            pass

def test_fuzz_interpolator():
    rng = random.Random(7)
    for _ in range(200):
        content = random_string(rng, rng.randint(0, 300))
        EnvironmentInterpolator.interpolate(content, {}, strict=False)

def test_edge_cases_parsers():
    parser = StackParser(context={})

    # Empty string
    parser.parse_from_string("")

    # Only whitespace
    parser.parse_from_string("   \n\t  \n")

    # Comments only
    parser.parse_from_string("# nothing here\n")

    # Top level must be a mapping
    with pytest.raises(StackConfigError):
        parser.parse_from_string("- a\n- b\n")

"""
Hypothesis strategies for generating test data for parking system.
"""
from hypothesis import strategies as st
import string

from models import PricingRule


# Rule name strategy - alphanumeric strings between 2-30 chars
rule_names = st.text(
    alphabet=string.ascii_letters + string.digits + ' ',
    min_size=2,
    max_size=30
).map(str.strip).filter(lambda x: len(x) >= 2)

# Money strategy - non-negative amounts with cents precision
money = st.floats(
    min_value=0.0,
    max_value=1000.0,
    allow_nan=False,
    allow_infinity=False
).map(lambda x: round(x, 2))

fraction_minutes = st.integers(min_value=1, max_value=120)

# License plate strategy - uppercase alphanumeric 3-10 chars
license_plates = st.text(
    alphabet=string.ascii_uppercase + string.digits,
    min_size=3,
    max_size=10
).filter(lambda x: len(x) >= 3)

# Plates as typed at the gate: mixed case with dashes and spaces
typed_plates = license_plates.flatmap(
    lambda plate: st.sampled_from([
        plate, plate.lower(), f' {plate} ', f'{plate[:3]}-{plate[3:]}',
        f'{plate[:2]} {plate[2:]}'.lower(),
    ])
)

# Stay length in seconds, up to one week
stay_seconds = st.integers(min_value=0, max_value=7 * 24 * 3600)

# Stay length in whole minutes
first_hour_minutes = st.integers(min_value=1, max_value=60)
over_an_hour_minutes = st.integers(min_value=61, max_value=7 * 24 * 60)


@st.composite
def pricing_rules(draw, capped=None):
    """Generate an unsaved PricingRule; ``capped`` forces a daily max on/off."""
    has_cap = draw(st.booleans()) if capped is None else capped
    return PricingRule(
        name=draw(rule_names),
        first_hour_value=draw(money),
        fraction_minutes=draw(fraction_minutes),
        fraction_value=draw(money),
        daily_max=draw(money) if has_cap else None,
    )

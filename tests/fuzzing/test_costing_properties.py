"""
Property-based tests for the pure costing engines.

Properties:
- Weighted-average unit cost ignores entry order and consumption entries
- The weighted average lies between the cheapest and dearest acquisition
- Consumption clamping never leaves negative stock and conserves quantity
- Real margin stays in [0, 100) for any non-negative target margin
- Sale profit equals net total minus cost of goods
- Recipe rollup is linear in line quantities
- Producing k whole batches consumes exactly k times each recipe line
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from costing_engines.ledger import clamp_consumption, to_ledger_scale
from costing_engines.pricing import price_finished_good
from costing_engines.production import plan_production
from costing_engines.rollup import RecipeLineInput, rollup_recipe
from costing_engines.sales import compute_sale_figures
from costing_engines.valuation import CostedEntry, unit_cost

quantities = st.decimals(
    min_value=Decimal("0.001"), max_value=Decimal("100000"), places=3
)
costs = st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2)
margins = st.decimals(min_value=Decimal("0"), max_value=Decimal("10000"), places=2)

FUZZ_SETTINGS = settings(
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)


@composite
def acquisitions(draw):
    """A non-empty list of costed purchases."""
    return draw(
        st.lists(
            st.builds(CostedEntry, quantity=quantities, total_cost=costs),
            min_size=1,
            max_size=20,
        )
    )


class TestWeightedAverage:
    @given(entries=acquisitions(), data=st.data())
    @FUZZ_SETTINGS
    def test_order_invariant(self, entries, data):
        shuffled = data.draw(st.permutations(entries))
        assert unit_cost(entries).unit_cost == unit_cost(shuffled).unit_cost

    @given(entries=acquisitions(), consumed=st.lists(quantities, max_size=10))
    @FUZZ_SETTINGS
    def test_consumption_does_not_move_cost(self, entries, consumed):
        with_consumption = entries + [CostedEntry(quantity=-q) for q in consumed]
        assert unit_cost(with_consumption).unit_cost == unit_cost(entries).unit_cost

    @given(entries=acquisitions())
    @FUZZ_SETTINGS
    def test_bounded_by_acquisition_prices(self, entries):
        prices = [e.total_cost / e.quantity for e in entries]
        average = unit_cost(entries).unit_cost

        tolerance = Decimal("1E-18")
        assert min(prices) - tolerance <= average <= max(prices) + tolerance


class TestClampConsumption:
    @given(
        stock=st.decimals(min_value=Decimal("-1000"), max_value=Decimal("100000"), places=3),
        consumed=quantities,
    )
    @FUZZ_SETTINGS
    def test_never_negative_and_conserving(self, stock, consumed):
        outcome = clamp_consumption(stock, consumed)

        assert outcome.stock_after >= 0
        assert outcome.shortfall >= 0
        assert outcome.stock_after - outcome.shortfall == max(Decimal("0"), stock) - consumed


class TestPricing:
    @given(cost=costs.filter(lambda c: c > 0), margin=margins)
    @FUZZ_SETTINGS
    def test_real_margin_bounded(self, cost, margin):
        pricing = price_finished_good(cost, margin)

        assert pricing.suggested_price >= cost
        assert Decimal("0") <= pricing.real_margin < Decimal("100")


class TestSaleFigures:
    @given(
        quantity=quantities,
        price=costs,
        cost=costs,
        discount=costs,
    )
    @FUZZ_SETTINGS
    def test_profit_identity(self, quantity, price, cost, discount):
        figures = compute_sale_figures(quantity, price, discount, cost)

        assert figures.total_profit == figures.net_total - cost * quantity
        if figures.net_total <= 0:
            assert figures.margin == 0


class TestRollup:
    @given(
        lines=st.lists(st.tuples(quantities, costs), min_size=1, max_size=10),
        factor=st.integers(min_value=1, max_value=10),
    )
    @FUZZ_SETTINGS
    def test_total_scales_with_quantities(self, lines, factor):
        ids = [uuid4() for _ in lines]
        unit_costs = {rm_id: cost for rm_id, (_, cost) in zip(ids, lines)}
        base = rollup_recipe(
            [RecipeLineInput(rm_id, q) for rm_id, (q, _) in zip(ids, lines)],
            Decimal("1"),
            unit_costs,
        )
        scaled = rollup_recipe(
            [RecipeLineInput(rm_id, q * factor) for rm_id, (q, _) in zip(ids, lines)],
            Decimal("1"),
            unit_costs,
        )

        assert scaled.total_cost == base.total_cost * factor
        assert scaled.unresolved == ()


class TestProductionPlan:
    @given(
        line_quantities=st.lists(quantities, min_size=1, max_size=6),
        yield_quantity=quantities,
        k=st.integers(min_value=2, max_value=50),
    )
    @FUZZ_SETTINGS
    def test_whole_batches_scale_every_line(self, line_quantities, yield_quantity, k):
        lines = [RecipeLineInput(uuid4(), q) for q in line_quantities]

        plan = plan_production(lines, yield_quantity, yield_quantity * k)

        assert plan.batches == k
        for line in lines:
            consumed = plan.consumed(line.raw_material_id)
            assert consumed == line.quantity * k
            assert to_ledger_scale(consumed) == consumed

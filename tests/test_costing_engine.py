from decimal import Decimal
from types import SimpleNamespace

import pytest

from stockledger.services.costing_engine import (
    calculate_costs,
    line_cost,
    true_cost_per_base_unit,
    usable_quantity,
    weighted_average_price,
)
from stockledger.services.errors import (
    IncompatibleUnitsError,
    InvalidInputError,
    InvalidWastePercentError,
    ZeroUsableQuantityError,
)


class TestTrueCost:

    def test_no_waste_volume(self):
        """Volume ingredient without waste costs price over millilitres."""
        costs = calculate_costs('5.00', 0, 'L', 2)
        assert costs.cost_per_ml == Decimal('0.0025')
        assert costs.cost_per_gram is None
        assert costs.cost_per_unit is None

    def test_waste_raises_cost_per_usable_gram(self):
        """Waste spreads the price over fewer usable grams."""
        # 20% of 1000g is trimmed, so 10.00 buys 800 usable grams
        costs = calculate_costs('10.00', 20, 'g', 1000)
        assert costs.cost_per_gram == Decimal('0.0125')

    def test_count_units(self):
        """Count ingredients are costed per unit."""
        costs = calculate_costs('6.00', 0, 'units', 12)
        assert costs.cost_per_unit == Decimal('0.5000')

    def test_full_waste_leaves_nothing_usable(self):
        """Test 100% waste raises ZeroUsableQuantityError."""
        with pytest.raises(ZeroUsableQuantityError):
            calculate_costs('10.00', 100, 'g', 1000)

    @pytest.mark.parametrize('waste', [-1, '100.01', 150])
    def test_waste_out_of_range(self, waste):
        """Test waste percent must be within 0-100."""
        with pytest.raises(InvalidWastePercentError):
            calculate_costs('10.00', waste, 'g', 1000)

    def test_non_positive_quantity(self):
        """Test quantity must be positive."""
        with pytest.raises(InvalidInputError):
            calculate_costs('10.00', 0, 'g', 0)

    def test_negative_price(self):
        """Test price cannot be negative."""
        with pytest.raises(InvalidInputError):
            calculate_costs('-1', 0, 'g', 10)

    def test_usable_quantity_is_in_base_unit(self):
        """Usable quantity is expressed in the base unit."""
        assert usable_quantity(2, 'kg', 25) == Decimal('1500')


class TestWeightedAverage:

    def test_equal_quantities_average(self):
        """Equal quantities average the two prices."""
        assert weighted_average_price(3, 100, 1, 100) == Decimal('2.0000')

    def test_zero_added_quantity_keeps_price(self):
        """Adding nothing keeps the existing price."""
        assert weighted_average_price(3, 100, 9, 0) == Decimal('3.0000')

    def test_empty_batch_keeps_price(self):
        """An empty batch takes the new price."""
        assert weighted_average_price('4.25', 0, 9, 0) == Decimal('4.2500')

    def test_uneven_quantities(self):
        """Average is weighted by quantity."""
        # (0.01 * 500 + 0.002 * 1000) / 1500
        assert weighted_average_price('0.01', 500, '0.002', 1000) == Decimal('0.0047')


class TestLineCost:

    def _ingredient(self, unit, **costs):
        fields = {'cost_per_ml': None, 'cost_per_gram': None, 'cost_per_unit': None}
        fields.update({key: Decimal(value) for key, value in costs.items()})
        return SimpleNamespace(unit=unit, **fields)

    def test_cost_matching_family(self):
        """True cost is read from the field of the unit family."""
        ingredient = self._ingredient('L', cost_per_ml='0.0025')
        assert true_cost_per_base_unit(ingredient, 'ml') == Decimal('0.0025')

    def test_cross_family_line_rejected(self):
        """Test cross-family cost lookups are rejected."""
        ingredient = self._ingredient('ml', cost_per_ml='0.0025')
        with pytest.raises(IncompatibleUnitsError):
            true_cost_per_base_unit(ingredient, 'g')

    def test_uncosted_ingredient_prices_at_zero(self):
        """An ingredient without cost prices at zero."""
        ingredient = self._ingredient('g')
        assert true_cost_per_base_unit(ingredient, 'kg') == Decimal(0)

    def test_line_cost_converts_to_base_unit(self):
        """Line cost converts the quantity to the base unit first."""
        assert line_cost('0.2', 'L', '0.01') == Decimal('2.0000')

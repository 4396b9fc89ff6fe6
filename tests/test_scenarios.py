"""
Tests for scenario generation.

Tests covering:
1. Demand distributions
2. Random sampling (reproducibility, pinned draws, convergence)
3. Full enumeration (odometer order, probabilities)
4. Sample lifecycle
"""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st


def probability_tables(max_levels=4):
    """Random valid probability tables."""
    weights = st.lists(st.integers(min_value=1, max_value=20), min_size=1, max_size=max_levels)
    return weights.map(lambda w: (np.array(w, dtype=float) / sum(w)).tolist())


class TestDemandDistribution:
    """Test DemandDistribution class."""

    def test_basic_creation(self):
        """Create a distribution."""
        from ambloc.stochastic import DemandDistribution

        dist = DemandDistribution([0.2, 0.5, 0.3])

        assert dist.n_levels == 3
        assert dist.max_level == 2
        assert np.allclose(dist.cumulative, [0.2, 0.7, 1.0])
        assert dist.mean() == pytest.approx(1.1)

    def test_level_lookup(self):
        """Smallest level whose cumulative probability exceeds the draw."""
        from ambloc.stochastic import DemandDistribution

        dist = DemandDistribution([0.2, 0.5, 0.3])

        assert dist.level_for(0.0) == 0
        assert dist.level_for(0.19) == 0
        assert dist.level_for(0.2) == 1
        assert dist.level_for(0.69) == 1
        assert dist.level_for(0.95) == 2

    def test_rounding_fallback(self):
        """Draws above a slightly short cumulative table map to the last level."""
        from ambloc.stochastic import DemandDistribution

        dist = DemandDistribution([0.3333333, 0.3333333, 0.3333333])

        assert dist.level_for(0.9999999999) == 2

    def test_invalid_sum(self):
        """Error when probabilities do not sum to 1."""
        from ambloc import InvalidInputError
        from ambloc.stochastic import DemandDistribution

        with pytest.raises(InvalidInputError, match="sum"):
            DemandDistribution([0.3, 0.3])

    def test_negative_probability(self):
        """Error on negative probabilities."""
        from ambloc import InvalidInputError
        from ambloc.stochastic import DemandDistribution

        with pytest.raises(InvalidInputError, match="negative"):
            DemandDistribution([1.2, -0.2])

    def test_table_is_read_only(self):
        """Probability tables cannot be changed after validation."""
        from ambloc.stochastic import DemandDistribution

        dist = DemandDistribution([0.5, 0.5])

        with pytest.raises(ValueError):
            dist.probabilities[0] = 1.0


class TestRandomSampling:
    """Test Monte Carlo scenario generation."""

    def test_pinned_sequence(self, single_node_graph):
        """Table [0.2, 0.5, 0.3], seed 42, n = 5 gives a fixed level sequence."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(single_node_graph).random_sample(n=5, seed=42)

        assert sample.d[:, 0].tolist() == [2, 1, 2, 1, 0]

    def test_equal_probabilities(self, toy_graph):
        """Every random scenario has probability 1/n."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=8, seed=3)

        assert sample.n_scenarios == 8
        assert np.allclose(sample.pi, 1 / 8)
        assert sample.pi.sum() == pytest.approx(1.0)

    def test_same_seed_identical(self, toy_graph):
        """Identical seeds give bit-identical scenario matrices."""
        from ambloc.stochastic import ScenarioSpace

        space = ScenarioSpace(toy_graph)
        a = space.random_sample(n=50, seed=11)
        b = space.random_sample(n=50, seed=11)
        c = space.random_sample(n=50, seed=12)

        assert np.array_equal(a.d, b.d)
        assert not np.array_equal(a.d, c.d)

    def test_scenario_major_draw_order(self, toy_graph):
        """One uniform per (scenario, node), scenario-major from one stream."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=4, seed=5)

        u = np.random.default_rng(5).random(4 * toy_graph.n_demands).reshape(4, toy_graph.n_demands)
        expected = np.column_stack([
            dist.levels_for(u[:, i]) for i, dist in enumerate(toy_graph.distributions)
        ])
        assert np.array_equal(sample.d, expected)

    def test_levels_within_tables(self, toy_graph):
        """Drawn levels stay inside each node's level table."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=200, seed=1)

        for i, dist in enumerate(toy_graph.distributions):
            assert sample.d[:, i].min() >= 0
            assert sample.d[:, i].max() <= dist.max_level

    def test_zero_sample_size(self, toy_graph):
        """A sample size of zero fails before drawing."""
        from ambloc import InvalidInputError
        from ambloc.stochastic import ScenarioSpace

        with pytest.raises(InvalidInputError, match="sample size"):
            ScenarioSpace(toy_graph).random_sample(n=0, seed=1)

    def test_non_integral_sample_size(self, toy_graph):
        """Float sample sizes are rejected as invalid input, numpy integers accepted."""
        from ambloc import InvalidInputError
        from ambloc.stochastic import ScenarioSpace

        space = ScenarioSpace(toy_graph)

        with pytest.raises(InvalidInputError, match="integer"):
            space.random_sample(n=5.0, seed=1)
        assert space.random_sample(n=np.int64(5), seed=1).n_scenarios == 5

    @pytest.mark.slow
    def test_convergence_to_distribution(self, toy_graph):
        """Empirical level frequencies approach the probability tables."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=20000, seed=2024)

        for i, dist in enumerate(toy_graph.distributions):
            freq = sample.level_frequencies(i, n_levels=dist.n_levels)
            assert np.allclose(freq, dist.probabilities, atol=0.02)

    @settings(max_examples=25, deadline=None)
    @given(tables=st.lists(probability_tables(), min_size=1, max_size=3), seed=st.integers(0, 2**31 - 1))
    def test_reproducible_property(self, tables, seed):
        """Any graph, any seed: two draws are identical."""
        from ambloc import AmbulanceGraph
        from ambloc.stochastic import ScenarioSpace

        graph = AmbulanceGraph.from_coverage(
            "h", [1.0], [1.0], tables, demands_covered_by_base=[set(range(len(tables)))]
        )
        space = ScenarioSpace(graph)

        assert np.array_equal(space.draw_levels(10, seed), space.draw_levels(10, seed))


class TestFullEnumeration:
    """Test full scenario enumeration."""

    def test_three_by_two(self, two_node_graph):
        """Tables of lengths 3 and 2 give exactly 6 scenarios."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(two_node_graph).full_sample()

        assert sample.n_scenarios == 6
        assert sample.is_full
        assert sample.pi.sum() == pytest.approx(1.0, abs=1e-9)

    def test_odometer_order(self, two_node_graph):
        """Last node varies fastest."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(two_node_graph).full_sample()

        assert sample.d.tolist() == [[0, 0], [0, 1], [1, 0], [1, 1], [2, 0], [2, 1]]

    def test_joint_probabilities(self, two_node_graph):
        """Joint probability is the product of node probabilities."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(two_node_graph).full_sample()

        expected = [0.2 * 0.4, 0.2 * 0.6, 0.5 * 0.4, 0.5 * 0.6, 0.3 * 0.4, 0.3 * 0.6]
        assert np.allclose(sample.pi, expected)

    def test_iter_scenarios_no_nodes(self):
        """Empty node list has exactly one (empty) scenario."""
        from ambloc.stochastic import iter_scenarios

        assert list(iter_scenarios([])) == [((), 1.0)]

    def test_scenario_count_matches_graph(self, toy_graph):
        """Scenario count is the product of table lengths."""
        from ambloc.stochastic import ScenarioSpace

        space = ScenarioSpace(toy_graph)

        assert space.number_of_scenarios == 3 * 2 * 4
        assert toy_graph.number_of_scenarios == 24
        assert space.full_sample().n_scenarios == 24

    def test_explosion_warning(self, toy_graph):
        """Enumerations above the threshold warn."""
        from ambloc import ScenarioExplosionWarning
        from ambloc.stochastic import ScenarioSpace

        space = ScenarioSpace(toy_graph, explosion_threshold=10)

        with pytest.warns(ScenarioExplosionWarning):
            space.full_sample()

    def test_volume_histogram(self, two_node_graph):
        """Probability per total demand volume."""
        from ambloc.stochastic import ScenarioSpace

        histogram = ScenarioSpace(two_node_graph).volume_histogram()

        assert list(histogram) == [0, 1, 2, 3]
        assert histogram[0] == pytest.approx(0.08)
        assert histogram[1] == pytest.approx(0.12 + 0.20)
        assert histogram[2] == pytest.approx(0.30 + 0.12)
        assert histogram[3] == pytest.approx(0.18)

    @settings(max_examples=40, deadline=None)
    @given(tables=st.lists(probability_tables(), min_size=1, max_size=4))
    def test_probabilities_sum_to_one(self, tables):
        """Full-enumeration probabilities sum to 1 within 1e-9."""
        from ambloc.stochastic import DemandDistribution, iter_scenarios

        dists = [DemandDistribution(t) for t in tables]
        probs = [p for _, p in iter_scenarios(dists)]

        assert len(probs) == int(np.prod([len(t) for t in tables]))
        assert abs(sum(probs) - 1.0) < 1e-9


class TestSample:
    """Test Sample lifecycle."""

    def test_arrays_read_only(self, toy_graph):
        """Scenario data is immutable."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=5, seed=1)

        with pytest.raises(ValueError):
            sample.d[0, 0] = 9
        with pytest.raises(ValueError):
            sample.pi[0] = 0.5

    def test_copies_graph_data(self, toy_graph):
        """Costs and coverage sets come from the graph."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=5, seed=1)

        assert np.array_equal(sample.f, [10.0, 12.0, 9.0])
        assert np.array_equal(sample.g, [3.0, 3.0, 4.0])
        assert sample.demands_covered_by_base == (frozenset({0}), frozenset({0, 1}), frozenset({1, 2}))
        assert sample.bases_covering_demand == (frozenset({0, 1}), frozenset({1, 2}), frozenset({2}))

    def test_attach_once(self, toy_graph):
        """A second solution cannot be attached."""
        from ambloc import Solution, StateError
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=5, seed=1)
        sample.attach_solution(Solution.infeasible(3))

        assert sample.is_solved
        with pytest.raises(StateError):
            sample.attach_solution(Solution.infeasible(3))

    def test_attach_wrong_size(self, toy_graph):
        """Solution vectors must match the number of bases."""
        from ambloc import DimensionError, Solution
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=5, seed=1)

        with pytest.raises(DimensionError):
            sample.attach_solution(Solution(x=[1, 0], z=[1, 0]))

    def test_attach_wrong_assignment_shape(self, toy_graph):
        """Assignment tensors must be demands x bases x scenarios."""
        from ambloc import DimensionError, Solution
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(toy_graph).random_sample(n=5, seed=1)

        with pytest.raises(DimensionError):
            sample.attach_solution(Solution(x=[1, 1, 1], z=[1, 1, 1], y=np.zeros((3, 3, 4))))

    def test_demand_sums(self, two_node_graph):
        """Total demand per scenario."""
        from ambloc.stochastic import ScenarioSpace

        sample = ScenarioSpace(two_node_graph).full_sample()

        assert sample.demand_sums.tolist() == [0, 1, 1, 2, 2, 3]

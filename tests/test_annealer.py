"""Tests for the annealing refiner."""

import numpy as np
import pytest

from keystream_cracker.core.annealer import AnnealingRefiner, recover_keystream
from keystream_cracker.core.dispersion import dispersion
from keystream_cracker.core.estimator import estimate_mask
from keystream_cracker.core.mask import apply_mask
from keystream_cracker.core.samples import encrypt, make_scenario
from keystream_cracker.utils.types import CrackConfig, IterationReport, PassReport


@pytest.fixture
def scenario():
    return make_scenario(20, 24, np.random.default_rng(7))


@pytest.fixture
def small_config():
    return CrackConfig(days=20, measures=24, n_iters=4, bmax=4, bit_cycles=2)


class RejectAll(AnnealingRefiner):
    def accept(self, e_old, e_new, temperature):
        super().accept(e_old, e_new, temperature)
        return False


class AcceptAll(AnnealingRefiner):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.baselines = []
        self.candidates = []

    def accept(self, e_old, e_new, temperature):
        self.baselines.append(e_old)
        self.candidates.append(e_new)
        return True


class RecordingReporter:
    def __init__(self):
        self.started = []
        self.passes = []
        self.finished = []

    def iteration_started(self, step, n_iters, temperature):
        self.started.append((step, n_iters, temperature))

    def pass_finished(self, report):
        self.passes.append(report)

    def iteration_finished(self, report):
        self.finished.append(report)


class TestTemperature:
    def test_non_increasing(self):
        temps = [AnnealingRefiner.temperature(j, 30, 30.0, 10.0) for j in range(30)]
        assert all(a >= b for a, b in zip(temps, temps[1:]))

    def test_starts_near_t0(self):
        t = AnnealingRefiner.temperature(0, 30, 30.0, 10.0)
        assert t == pytest.approx(30.0 * (1.0 - np.exp(-10.0)))

    def test_ends_at_zero(self):
        assert AnnealingRefiner.temperature(29, 30, 30.0, 10.0) == pytest.approx(0.0, abs=1e-12)

    def test_single_iteration(self):
        t = AnnealingRefiner.temperature(0, 1, 30.0, 10.0)
        assert t == pytest.approx(30.0 * (1.0 - np.exp(-10.0)))


class TestAccept:
    def test_downhill_always(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, rng=np.random.default_rng(0))
        assert ref.accept(10.0, 9.0, 0.0)
        assert ref.accept(10.0, 9.0, 1.0)

    def test_uphill_rejected_when_frozen(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, rng=np.random.default_rng(0))
        assert not ref.accept(10.0, 11.0, 0.0)
        assert not ref.accept(10.0, 10.0, 0.0)

    def test_flat_move_accepted_when_warm(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, rng=np.random.default_rng(0))
        assert all(ref.accept(10.0, 10.0, 1.0) for _ in range(20))

    def test_huge_uphill_rejected(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, rng=np.random.default_rng(0))
        assert not any(ref.accept(0.0, 1e12, 30.0) for _ in range(20))

    def test_acceptance_frequency(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, rng=np.random.default_rng(0))
        hits = sum(ref.accept(0.0, 1.0, 1.0) for _ in range(4000))
        assert hits / 4000 == pytest.approx(np.exp(-1.0), abs=0.03)


class TestState:
    def test_initial_mask_from_estimator(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext)
        assert np.array_equal(ref.mask, estimate_mask(scenario.ciphertext))
        assert np.array_equal(ref.decrypted, apply_mask(scenario.ciphertext, ref.mask))
        assert ref.energy == dispersion(ref.decrypted)

    def test_explicit_mask(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, mask=scenario.keystream)
        assert np.array_equal(ref.decrypted, scenario.plaintext)
        assert ref.mask is not scenario.keystream

    def test_ciphertext_is_read_only_copy(self, scenario):
        original = scenario.ciphertext.copy()
        ref = AnnealingRefiner(scenario.ciphertext)
        with pytest.raises(ValueError):
            ref.ciphertext[0, 0] = 1
        scenario.ciphertext[0, 0] ^= 1
        assert ref.ciphertext[0, 0] == original[0, 0]

    def test_mask_shape_checked(self, scenario):
        with pytest.raises(ValueError):
            AnnealingRefiner(scenario.ciphertext, mask=np.zeros(3, dtype=np.uint32))

    @pytest.mark.parametrize("days,measures", [(19, 24), (20, 25), (24, 20)])
    def test_config_shape_checked(self, scenario, days, measures):
        cfg = CrackConfig(days=days, measures=measures, n_iters=2, bmax=4, bit_cycles=1)
        with pytest.raises(ValueError, match="ciphertext is 20x24"):
            AnnealingRefiner(scenario.ciphertext, config=cfg)


class TestAdjustMaskBit:
    @pytest.mark.parametrize("incremental", [True, False])
    def test_rejected_proposals_restore_state(self, scenario, incremental):
        ref = RejectAll(scenario.ciphertext, rng=np.random.default_rng(1),
                        incremental=incremental)
        mask = ref.mask.copy()
        decrypted = ref.decrypted.copy()
        energy = ref.energy
        for bit in range(ref.config.bmax + 1):
            report = ref.adjust_mask_bit(bit, 5.0)
            assert report.accepted == 0
            assert np.array_equal(ref.mask, mask)
            assert np.array_equal(ref.decrypted, decrypted)
            assert ref.energy == energy
            assert report.energy_after == energy

    def test_frozen_at_optimum(self):
        # Row-constant plaintext has zero dispersion; every toggle heats it
        plaintext = np.repeat(np.arange(1, 11, dtype=np.uint32)[:, np.newaxis], 16, axis=1)
        key = np.random.default_rng(2).integers(0, 2**32, size=16, dtype=np.uint64).astype(np.uint32)
        ciphertext = encrypt(plaintext, key)
        ref = AnnealingRefiner(ciphertext, mask=key, rng=np.random.default_rng(3))
        assert ref.energy == 0.0
        for bit in range(ref.config.bmax + 1):
            report = ref.adjust_mask_bit(bit, 0.0)
            assert report.accepted == 0
        assert np.array_equal(ref.mask, key)
        assert ref.energy == 0.0

    def test_moving_baseline(self, scenario):
        ref = AcceptAll(scenario.ciphertext, rng=np.random.default_rng(1))
        start = ref.energy
        ref.adjust_mask_bit(2, 1.0)
        assert ref.baselines[0] == start
        # Each comparison starts from the previous accepted energy
        assert ref.baselines[1:] == ref.candidates[:-1]

    def test_single_bit_toggle_applied(self, scenario):
        ref = AcceptAll(scenario.ciphertext, rng=np.random.default_rng(1))
        before = ref.mask.copy()
        ref.adjust_mask_bit(3, 1.0)
        assert np.array_equal(ref.mask, before ^ np.uint32(8))

    def test_high_group_toggle_applied(self, scenario):
        ref = AcceptAll(scenario.ciphertext, rng=np.random.default_rng(1))
        before = ref.mask.copy()
        ref.adjust_mask_bit(ref.config.bmax, 1.0)
        assert np.array_equal(ref.mask, before ^ np.uint32(0xFFFFFF00))

    def test_report_fields(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext, rng=np.random.default_rng(1))
        start = ref.energy
        report = ref.adjust_mask_bit(0, 2.0)
        assert isinstance(report, PassReport)
        assert report.bit == 0
        assert report.temperature == 2.0
        assert report.energy_before == start
        assert report.energy_after == ref.energy
        assert report.proposals == 24
        assert ref.energy == dispersion(apply_mask(scenario.ciphertext, ref.mask))

    def test_bad_bit(self, scenario):
        ref = AnnealingRefiner(scenario.ciphertext)
        with pytest.raises(ValueError):
            ref.adjust_mask_bit(ref.config.bmax + 1, 1.0)


class TestModes:
    def test_incremental_matches_reference(self, scenario, small_config):
        fast = AnnealingRefiner(scenario.ciphertext, config=small_config,
                                rng=np.random.default_rng(99), incremental=True)
        slow = AnnealingRefiner(scenario.ciphertext, config=small_config,
                                rng=np.random.default_rng(99), incremental=False)
        for a, b in zip(fast.iterate(), slow.iterate()):
            assert [p.bit for p in a.passes] == [p.bit for p in b.passes]
            assert [p.energy_after for p in a.passes] == [p.energy_after for p in b.passes]
            assert [p.accepted for p in a.passes] == [p.accepted for p in b.passes]
            assert np.array_equal(fast.mask, slow.mask)
        assert np.array_equal(fast.decrypted, slow.decrypted)
        assert fast.energy == slow.energy

    def test_seeded_runs_reproducible(self, scenario, small_config):
        a = recover_keystream(scenario.ciphertext, small_config, rng=np.random.default_rng(5))
        b = recover_keystream(scenario.ciphertext, small_config, rng=np.random.default_rng(5))
        assert np.array_equal(a.mask, b.mask)
        assert a.final_energy == b.final_energy


class TestRun:
    def test_fixed_iteration_count(self, scenario, small_config):
        reporter = RecordingReporter()
        ref = AnnealingRefiner(scenario.ciphertext, config=small_config,
                               rng=np.random.default_rng(0), reporter=reporter)
        result = ref.run()
        assert len(result.trajectory) == small_config.n_iters
        assert all(isinstance(it, IterationReport) for it in result.trajectory)
        assert all(len(it.passes) == small_config.passes_per_iteration
                   for it in result.trajectory)
        assert len(reporter.started) == small_config.n_iters
        assert len(reporter.finished) == small_config.n_iters
        assert len(reporter.passes) == small_config.n_iters * small_config.passes_per_iteration

    def test_bits_drawn_inclusive(self, scenario):
        cfg = CrackConfig(days=20, measures=24, n_iters=3, bmax=2, bit_cycles=10)
        result = AnnealingRefiner(scenario.ciphertext, config=cfg,
                                  rng=np.random.default_rng(0)).run()
        bits = {p.bit for it in result.trajectory for p in it.passes}
        assert bits == {0, 1, 2}

    def test_schedule_in_reports(self, scenario, small_config):
        result = AnnealingRefiner(scenario.ciphertext, config=small_config,
                                  rng=np.random.default_rng(0)).run()
        temps = [it.temperature for it in result.trajectory]
        assert temps == sorted(temps, reverse=True)
        assert temps[-1] == pytest.approx(0.0, abs=1e-12)

    def test_result_consistent(self, scenario, small_config):
        result = recover_keystream(scenario.ciphertext, small_config,
                                   rng=np.random.default_rng(0))
        assert np.array_equal(result.decrypted, apply_mask(scenario.ciphertext, result.mask))
        assert result.final_energy == dispersion(result.decrypted)
        assert np.array_equal(result.initial_mask, estimate_mask(scenario.ciphertext))
        assert result.max_bit_width > 0

    def test_zero_temperature_is_greedy(self, scenario):
        cfg = CrackConfig(days=20, measures=24, n_iters=3, bmax=4, bit_cycles=2, t0=0.0)
        result = recover_keystream(scenario.ciphertext, cfg, rng=np.random.default_rng(0))
        for it in result.trajectory:
            assert all(p.energy_after <= p.energy_before for p in it.passes)
        assert result.final_energy <= result.initial_energy

from __future__ import annotations

import pytest

from caffeinated.powerups import (
    POWER_UPS,
    PowerUpCallbacks,
    PowerUpKind,
    PowerUpSystem,
    PowerUpSystemConfig,
    PowerUpType,
)


def test_second_protein_bar_is_rejected() -> None:
    system = PowerUpSystem()
    assert system.activate_power_up(PowerUpType.protein_bar, 0) is True
    assert system.activate_power_up(PowerUpType.protein_bar, 1) is False
    assert system.active_count == 1


def test_concurrency_cap() -> None:
    system = PowerUpSystem(config=PowerUpSystemConfig(max_active_power_ups=2))
    assert system.activate_power_up(PowerUpType.protein_bar, 0)
    assert system.activate_power_up(PowerUpType.double_points, 0)

    assert not system.can_activate_power_up(PowerUpType.shield, 0)
    reason = system.activation_blocker(PowerUpType.shield, 0)
    assert reason is not None and "Only 2" in reason
    assert system.activate_power_up(PowerUpType.shield, 0) is False
    assert system.active_count == 2


def test_combined_effect_saturates_reductions_and_multiplies_multipliers() -> None:
    system = PowerUpSystem(config=PowerUpSystemConfig(max_active_power_ups=5))
    for pt in (PowerUpType.protein_bar, PowerUpType.power_nap, PowerUpType.vitamins, PowerUpType.double_points):
        assert system.activate_power_up(pt, 0)

    combined = system.get_combined_effect()
    assert combined.crash_reduction == 0.5
    assert combined.caffeine_depletion_reduction == 0.2
    assert combined.productivity_multiplier == pytest.approx(1.5)
    assert combined.score_multiplier == pytest.approx(2.0)
    assert combined.damage_immunity is False


def test_shield_grants_immunity() -> None:
    system = PowerUpSystem()
    system.activate_power_up(PowerUpType.shield, 0)
    assert system.get_combined_effect().damage_immunity


def test_neutral_effect_when_nothing_active() -> None:
    combined = PowerUpSystem().get_combined_effect()
    assert combined.crash_reduction == 0
    assert combined.score_multiplier == 1
    assert combined.productivity_multiplier == 1


def test_cooldown_counts_from_activation() -> None:
    expired: list[PowerUpType] = []
    ready: list[PowerUpType] = []
    system = PowerUpSystem(
        callbacks=PowerUpCallbacks(
            on_power_up_expired=lambda p: expired.append(p.id),
            on_power_up_ready=ready.append,
        )
    )
    system.activate_power_up(PowerUpType.protein_bar, 0)

    system.update(30_000)
    assert expired == [PowerUpType.protein_bar]
    assert not system.is_power_up_active(PowerUpType.protein_bar)
    assert system.get_cooldown_remaining(PowerUpType.protein_bar, 30_000) == pytest.approx(15_000)
    assert not system.activate_power_up(PowerUpType.protein_bar, 40_000)

    system.update(45_000)
    assert ready == [PowerUpType.protein_bar]
    assert system.activate_power_up(PowerUpType.protein_bar, 45_000)


def test_global_cooldown_multiplier_scales_cooldowns() -> None:
    system = PowerUpSystem(config=PowerUpSystemConfig(global_cooldown_multiplier=0.5))
    system.activate_power_up(PowerUpType.protein_bar, 0)
    assert system.get_cooldown_remaining(PowerUpType.protein_bar, 0) == pytest.approx(22_500)


def test_instant_power_ups_hold_a_slot_for_their_duration() -> None:
    system = PowerUpSystem()
    assert POWER_UPS[PowerUpType.vitamins].kind == PowerUpKind.instant
    system.activate_power_up(PowerUpType.vitamins, 0)
    system.update(19_999)
    assert system.is_power_up_active(PowerUpType.vitamins)
    system.update(20_000)
    assert not system.is_power_up_active(PowerUpType.vitamins)


def test_disabled_paused_and_unknown_are_rejected() -> None:
    disabled = PowerUpSystem(config=PowerUpSystemConfig(enabled=False))
    assert disabled.activate_power_up(PowerUpType.shield, 0) is False

    paused = PowerUpSystem()
    paused.pause()
    assert paused.activate_power_up(PowerUpType.shield, 0) is False
    paused.resume()
    assert paused.activate_power_up(PowerUpType.shield, 0) is True

    system = PowerUpSystem()
    assert system.activate_power_up("jetpack", 0) is False
    assert "Unknown power-up" in (system.activation_blocker("jetpack") or "")


def test_paused_system_does_not_expire() -> None:
    system = PowerUpSystem()
    system.activate_power_up(PowerUpType.shield, 0)
    system.pause()
    system.update(60_000)
    assert system.is_power_up_active(PowerUpType.shield)


def test_reset_round_trips_to_fresh_instance() -> None:
    system = PowerUpSystem()
    system.activate_power_up(PowerUpType.protein_bar, 0)
    system.activate_power_up(PowerUpType.shield, 0)
    system.update(5_000)
    system.pause()
    system.reset()

    fresh = PowerUpSystem()
    assert system.active_power_ups() == fresh.active_power_ups() == []
    assert system.paused == fresh.paused
    assert system.get_combined_effect() == fresh.get_combined_effect()
    for pt in PowerUpType:
        assert system.get_cooldown_remaining(pt, 0) == fresh.get_cooldown_remaining(pt, 0) == 0
        assert system.can_activate_power_up(pt, 0)

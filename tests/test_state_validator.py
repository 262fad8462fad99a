import math

import pytest

from jetoni.models.player import PlayerStateUpdate, Rotation, Vector3
from jetoni.services.errors import InvalidState
from jetoni.services.state_validator import (
    PITCH_LIMIT,
    clamp_cooldown,
    clamp_fuel,
    clamp_position,
    clamp_rotation,
    clamp_velocity,
    clamp_yaw,
    validate_update,
)


def _norm(v: Vector3) -> float:
    return math.hypot(v.x, v.y, v.z)


def test_velocity_is_rescaled_keeping_direction():
    clean = validate_update(PlayerStateUpdate(velocity=Vector3(x=10000, y=0, z=0)))

    velocity = clean["velocity"]
    assert _norm(velocity) == pytest.approx(500.0)
    assert velocity.y == 0 and velocity.z == 0
    assert velocity.x > 0


def test_velocity_under_limit_is_untouched():
    v = Vector3(x=3.0, y=4.0, z=0.0)
    assert clamp_velocity(v) == v


def test_position_is_clamped_per_axis():
    clamped = clamp_position(Vector3(x=20000, y=-20000, z=42))
    assert (clamped.x, clamped.y, clamped.z) == (10000, -10000, 42)


def test_rotation_bounds():
    rot = clamp_rotation(Rotation(yaw=10.0, pitch=-10.0))
    assert rot.yaw == math.pi
    assert -math.pi / 2 < rot.pitch < math.pi / 2
    assert rot.pitch == -PITCH_LIMIT
    # -π est ramené sur π : intervalle (-π, π]
    assert clamp_yaw(-math.pi) == math.pi
    assert clamp_yaw(-10.0) == math.pi


def test_fuel_and_cooldown_bounds():
    assert clamp_fuel(-5) == 0
    assert clamp_fuel(150) == 100
    assert clamp_cooldown(99) == 30
    assert clamp_cooldown(-1) == 0


@pytest.mark.parametrize(
    "vector",
    [
        Vector3(x=123456.0, y=-98765.0, z=0.5),
        Vector3(x=1e9, y=1e9, z=1e9),
        Vector3(x=333.3, y=-444.4, z=555.5),
    ],
)
def test_clamping_is_idempotent(vector):
    once_p = clamp_position(vector)
    assert clamp_position(once_p) == once_p

    once_v = clamp_velocity(vector)
    assert clamp_velocity(once_v) == once_v
    assert _norm(once_v) <= 500.0

    once_r = clamp_rotation(Rotation(yaw=vector.x, pitch=vector.y))
    assert clamp_rotation(once_r) == once_r

    assert clamp_fuel(clamp_fuel(vector.x)) == clamp_fuel(vector.x)
    assert clamp_cooldown(clamp_cooldown(vector.z)) == clamp_cooldown(vector.z)


@pytest.mark.parametrize(
    "update",
    [
        PlayerStateUpdate(position=Vector3(x=float("nan"), y=0, z=0)),
        PlayerStateUpdate(velocity=Vector3(x=0, y=float("inf"), z=0)),
        PlayerStateUpdate(rotation=Rotation(yaw=float("-inf"), pitch=0)),
        PlayerStateUpdate(fuel=float("nan")),
        PlayerStateUpdate(ability_cooldown=float("inf")),
        PlayerStateUpdate(survived_time=float("nan")),
    ],
)
def test_non_finite_values_are_rejected(update):
    with pytest.raises(InvalidState):
        validate_update(update)


def test_rejection_happens_before_any_clamping():
    update = PlayerStateUpdate(fuel=500.0, velocity=Vector3(x=float("nan"), y=0, z=0))
    with pytest.raises(InvalidState) as exc:
        validate_update(update)
    assert exc.value.message == "invalid_velocity"


def test_only_present_fields_are_returned():
    clean = validate_update(PlayerStateUpdate(fuel=42.0, is_dashing=True))
    assert clean == {"fuel": 42.0, "is_dashing": True}


def test_counters_are_floored_at_zero():
    clean = validate_update(PlayerStateUpdate(survived_time=-3.0, tag_count=-2))
    assert clean["survived_time"] == 0.0
    assert clean["tag_count"] == 0

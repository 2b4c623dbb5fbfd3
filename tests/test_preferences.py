"""Tests for the preference store."""

import pytest
import yaml

from config import PROFILES, SIGNALS
from core.preferences import Preferences, infer_profile, load_config


class TestLoading:
    def test_defaults(self):
        prefs = Preferences()
        assert prefs.get("focus_minutes") == 25
        assert prefs.get("profile") == "work"
        assert prefs.cadence("weather") == SIGNALS["weather"]["cadence"]

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == {}
        prefs = Preferences.load(str(tmp_path / "absent.yaml"))
        assert prefs.get("show_media") is True

    def test_yaml_values_are_validated(self, tmp_path):
        path = tmp_path / "panel.yaml"
        path.write_text(yaml.safe_dump({
            "show_weather": True,
            "focus_minutes": 500,
            "cadences": {"weather": 900},
            "temperature_unit": "kelvin",
            "bogus": 1,
        }))
        prefs = Preferences.load(str(path))
        assert prefs.get("show_weather") is True
        assert prefs.get("focus_minutes") == 120
        assert prefs.cadence("weather") == 900.0
        assert prefs.get("temperature_unit") == "fahrenheit"
        assert prefs.get("bogus") is None

    def test_null_and_scalar_values_fall_back_to_defaults(self, tmp_path):
        path = tmp_path / "panel.yaml"
        path.write_text("cadences:\n  weather: null\nlatitude: null\nplayers: 5\n")
        prefs = Preferences.load(str(path))
        assert prefs.cadence("weather") == SIGNALS["weather"]["cadence"]
        assert prefs.get("latitude") == Preferences().get("latitude")
        assert prefs.get("players") == Preferences().get("players")

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "panel.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_save_round_trip(self, tmp_path):
        path = tmp_path / "panel.yaml"
        prefs = Preferences(path=str(path))
        prefs.set("show_calendar", True)
        prefs.save()
        assert Preferences.load(str(path)).get("show_calendar") is True


class TestMutation:
    def test_set_notifies_on_change_only(self):
        prefs = Preferences()
        seen = []
        prefs.observe(lambda key, old, new: seen.append((key, old, new)))
        prefs.set("show_weather", True)
        prefs.set("show_weather", True)
        assert seen == [("show_weather", False, True)]

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            Preferences().set("nope", 1)

    def test_minutes_are_clamped(self):
        prefs = Preferences()
        assert prefs.set("break_minutes", 0) == 1
        assert prefs.set("focus_minutes", "45") == 45

    def test_bad_cadence_rejected(self):
        prefs = Preferences()
        with pytest.raises(ValueError):
            prefs.set_cadence("weather", -1)
        with pytest.raises(KeyError):
            prefs.set_cadence("tides", 10)

    def test_null_and_scalar_values_rejected(self):
        prefs = Preferences()
        with pytest.raises(ValueError):
            prefs.set("latitude", None)
        with pytest.raises(ValueError):
            prefs.set("cadences", {"weather": None})
        with pytest.raises(ValueError):
            prefs.set("players", 5)
        assert prefs.set("players", "vlc") == ["vlc"]

    def test_unobserve(self):
        prefs = Preferences()
        seen = []
        observer = lambda *args: seen.append(args)  # noqa: E731
        prefs.observe(observer)
        prefs.unobserve(observer)
        prefs.set("show_gpu", True)
        assert seen == []

    def test_observer_errors_do_not_block_others(self):
        prefs = Preferences()
        seen = []

        def broken(*args):
            raise RuntimeError("observer bug")

        prefs.observe(broken)
        prefs.observe(lambda key, old, new: seen.append(key))
        prefs.set("show_gpu", True)
        assert seen == ["show_gpu"]

    def test_reset(self):
        prefs = Preferences({"show_gpu": True})
        prefs.reset()
        assert prefs.get("show_gpu") is False


class TestProfiles:
    def test_apply_profile(self):
        prefs = Preferences()
        prefs.apply_profile("gaming")
        assert prefs.get("profile") == "gaming"
        for key, value in PROFILES["gaming"].items():
            assert prefs.get(key) == value

    def test_unknown_profile(self):
        with pytest.raises(KeyError):
            Preferences().apply_profile("party")

    @pytest.mark.parametrize("app_id, profile", [
        ("steam", "gaming"),
        ("com.example.SuperGame", "gaming"),
        ("us.zoom.xos", "meeting"),
        ("org.gnome.Terminal", "work"),
        ("", None),
        (None, None),
    ])
    def test_infer_profile(self, app_id, profile):
        assert infer_profile(app_id) == profile

    def test_auto_profile_off_does_nothing(self):
        prefs = Preferences()
        assert prefs.apply_profile_for_app("steam") is None
        assert prefs.get("profile") == "work"

    def test_auto_profile_switches_once(self):
        prefs = Preferences({"auto_profile": True})
        assert prefs.apply_profile_for_app("zoom") == "meeting"
        assert prefs.apply_profile_for_app("zoom") is None
        assert prefs.get("show_media") is False

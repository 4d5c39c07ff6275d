from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

from carecore import settings as cs

APP_PATH = str(Path(__file__).resolve().parents[1] / "app.py")


@pytest.fixture
def settings_path(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    monkeypatch.setattr(cs, "SETTINGS_PATH", path)
    return path


def _open_settings_page():
    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.run()
    at.sidebar.radio[0].set_value("관리 설정").run()
    assert not at.exception
    return at


def test_criterion_is_edited_inline(settings_path):
    at = _open_settings_page()
    at.number_input(key="crit_value_1").set_value(45)
    at.selectbox(key="crit_op_1").set_value("greater")
    at.button(key="save_crit_1").click().run()

    assert not at.exception
    saved = cs.find_criterion(cs.load_settings(settings_path), "1")
    assert (saved.type, saved.value, saved.operator) == ("avg_stay_time", 45, "greater")


def test_criterion_type_can_change(settings_path):
    at = _open_settings_page()
    at.selectbox(key="crit_type_2").set_value("avg_stay_time")
    at.button(key="save_crit_2").click().run()

    saved = cs.find_criterion(cs.load_settings(settings_path), "2")
    assert (saved.type, saved.value, saved.operator) == ("avg_stay_time", 3, "greater")


def test_criterion_is_deleted(settings_path):
    at = _open_settings_page()
    at.button(key="del_1").click().run()

    assert not at.exception
    assert [c.id for c in cs.load_settings(settings_path).screening_criteria] == ["2"]

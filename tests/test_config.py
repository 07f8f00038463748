import pytest

from rallyclip.config import (
    GameFormat,
    PaddingConfig,
    TuningConfig,
    build_configs,
    load_config,
)


# -------------------------------------------------
# Validation
# -------------------------------------------------

def test_defaults_are_valid():
    PaddingConfig().validate()
    TuningConfig().validate()
    for game_format in GameFormat:
        game_format.default_tuning.validate()


@pytest.mark.parametrize("field", ["pre_padding", "post_padding", "min_raw_duration"])
def test_negative_padding_rejected(field):
    with pytest.raises(ValueError):
        PaddingConfig(**{field: -0.5}).validate()


@pytest.mark.parametrize("field, value", [
    ("action_energy_threshold", 1.2),
    ("walking_energy_threshold", -0.1),
    ("ready_max_energy", 2.0),
    ("clustering_threshold", -1.0),
    ("reset_low_energy_seconds", -2.0),
    ("ready_timeout_seconds", -1.0),
    ("ready_stability_window_seconds", 0.0),
])
def test_out_of_domain_tuning_rejected(field, value):
    with pytest.raises(ValueError):
        TuningConfig(**{field: value}).validate()


def test_threshold_order_not_enforced():
    # walking above action is odd but allowed
    TuningConfig(walking_energy_threshold=0.7, action_energy_threshold=0.5).validate()


# -------------------------------------------------
# From settings
# -------------------------------------------------

def test_tuning_from_dict_overrides_base():
    base = GameFormat.INDOOR.default_tuning
    tuning = TuningConfig.from_dict({"reset_low_energy_seconds": 3.0}, base=base)

    assert tuning.reset_low_energy_seconds == 3.0
    assert tuning.action_energy_threshold == 0.55


def test_unknown_setting_rejected():
    with pytest.raises(ValueError, match="Unknown tuning"):
        TuningConfig.from_dict({"huddle_threshold": 3})


def test_invalid_padding_from_dict():
    with pytest.raises(ValueError):
        PaddingConfig.from_dict({"pre_padding": -1})


def test_padding_from_empty_section():
    assert PaddingConfig.from_dict(None) == PaddingConfig()


# -------------------------------------------------
# Formats
# -------------------------------------------------

@pytest.mark.parametrize("filename, expected", [
    ("Beach_Finals.csv", GameFormat.BEACH),
    ("/videos/grass/day1.csv", GameFormat.INDOOR),
    ("league_GRASS_02.csv", GameFormat.GRASS),
    ("match.csv", GameFormat.INDOOR),
])
def test_guess_format(filename, expected):
    assert GameFormat.guess(filename) is expected


def test_format_presets_differ():
    assert GameFormat.BEACH.default_tuning.clustering_threshold == 10.0
    assert GameFormat.GRASS.default_tuning.action_energy_threshold == 0.58
    assert GameFormat.INDOOR.default_tuning.clustering_threshold == 7.0
    assert GameFormat.BEACH.display_name == "Beach"


# -------------------------------------------------
# YAML loading
# -------------------------------------------------

def test_missing_config_file_gives_defaults(tmp_path):
    assert load_config(str(tmp_path / "nope.yaml")) == {}


def test_load_and_build(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "format: grass\n"
        "padding:\n"
        "  pre_padding: 1.0\n"
        "tuning:\n"
        "  enable_warmup_skipping: false\n"
    )

    game_format, padding, tuning = build_configs(load_config(str(path)))

    assert game_format is GameFormat.GRASS
    assert padding.pre_padding == 1.0
    assert padding.post_padding == 3.0
    assert tuning.action_energy_threshold == 0.58
    assert tuning.enable_warmup_skipping is False


def test_build_guesses_format_from_filename():
    game_format, _, tuning = build_configs({}, filename="beach_day.csv")

    assert game_format is GameFormat.BEACH
    assert tuning.clustering_threshold == 10.0


def test_build_rejects_unknown_format():
    with pytest.raises(ValueError, match="Unknown game format"):
        build_configs({"format": "snow"})


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(str(path)) == {}


# -------------------------------------------------
# Malformed settings
# -------------------------------------------------

def test_non_mapping_section_rejected():
    with pytest.raises(ValueError, match="padding settings must be a mapping"):
        build_configs({"padding": 2})


@pytest.mark.parametrize("value", ["high", None, True, [0.5]])
def test_non_numeric_threshold_rejected(value):
    with pytest.raises(ValueError, match="action_energy_threshold must be a number"):
        build_configs({"tuning": {"action_energy_threshold": value}})


def test_non_numeric_padding_rejected():
    with pytest.raises(ValueError, match="post_padding must be a number"):
        PaddingConfig.from_dict({"post_padding": "3s"})


def test_non_bool_warmup_flag_rejected():
    with pytest.raises(ValueError, match="enable_warmup_skipping"):
        TuningConfig.from_dict({"enable_warmup_skipping": "yes please"})


def test_integer_values_accepted():
    padding = PaddingConfig.from_dict({"pre_padding": 1, "post_padding": 0})

    assert padding.pre_padding == 1


def test_malformed_yaml_rejected(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("padding: [1, 2\ntuning: {\n")

    with pytest.raises(ValueError, match="Invalid config file"):
        load_config(str(path))


def test_yaml_list_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- beach\n- grass\n")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_config(str(path))

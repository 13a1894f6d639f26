from dataclasses import dataclass

LABEL_COLUMN = "pitch_name"

FEATURE_COLUMNS: tuple[str, ...] = (
    "release_speed",
    "release_pos_x",
    "release_pos_z",
    "pfx_x",
    "pfx_z",
    "plate_x",
    "plate_z",
    "release_spin_rate",
    "release_extension",
    "spin_axis",
)

REQUIRED_COLUMNS: tuple[str, ...] = (LABEL_COLUMN, *FEATURE_COLUMNS)


@dataclass(frozen=True)
class PitchRecord:
    label: str
    release_speed: float
    release_pos_x: float
    release_pos_z: float
    pfx_x: float
    pfx_z: float
    plate_x: float
    plate_z: float
    release_spin_rate: float
    release_extension: float
    spin_axis: float

    def feature_vector(self) -> list[float]:
        return [float(getattr(self, name)) for name in FEATURE_COLUMNS]

"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Battery physics
# ------------------------------------------------------------------

INITIAL_TEMPERATURE = 25.0  # °C, also the cooling baseline
COOLING_RATE = 0.2
HEATING_COEFFICIENT = 0.0005  # heating effect of I²R
INTERNAL_RESISTANCE = 0.0461  # Ω

THERMAL_RUNAWAY_THRESHOLD = 70.0  # °C
RUNAWAY_MULTIPLIER = 1.05  # per tick while in runaway
CRITICAL_FAILURE_TEMP = 150.0  # °C

BASE_DEGRADATION = 0.0001  # SOH % per second
HIGH_TEMP_DEGRADATION = 0.0005  # extra SOH % per second above 45 °C
HIGH_TEMP_DEGRADATION_THRESHOLD = 45.0  # °C

NOMINAL_VOLTAGE = 400.0  # V
MIN_VOLTAGE = 300.0  # V, fully discharged

# SOC thresholds scanned from the top; first match wins.
SOC_VOLTAGE_STEPS: tuple[tuple[float, float], ...] = (
    (0.9, 400.0),
    (0.8, 390.0),
    (0.7, 380.0),
    (0.6, 370.0),
    (0.5, 360.0),
    (0.4, 350.0),
    (0.3, 340.0),
    (0.2, 330.0),
    (0.1, 320.0),
)

# ------------------------------------------------------------------
# Vehicle / driving
# ------------------------------------------------------------------

AIR_DENSITY = 1.2  # kg/m³
GRAVITY = 9.81  # m/s²
JOULES_PER_KWH = 3_600_000
MPS_TO_KMH = 3.6

SPEED_STEP_MAX = 3.0  # m/s per tick
AMBIENT_STEP_MAX = 0.5  # °C per tick
INITIAL_AMBIENT_TEMPERATURE = 18.3  # °C
INITIAL_SPEED_FRACTION = 0.5  # of max wheel speed

# Physics is always advanced by one second per tick, whatever the
# scheduler interval is.
PHYSICS_STEP_SECONDS = 1

ANOMALY_VOLTAGE_DROP = 2.83  # V per tick

# Terminal thresholds; reaching either re-initializes the battery.
RESET_STATE_OF_HEALTH = 0.5
RESET_STATE_OF_CHARGE = 0.05

# ------------------------------------------------------------------
# Fleet-measured energy draw (km/h : kWh)
# ------------------------------------------------------------------

DEFAULT_ENERGY_SAMPLES: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),
    (10.0, 2.0),
    (20.0, 3.0),
    (30.0, 4.1),
    (40.0, 5.0),
    (50.0, 6.3),
    (60.0, 7.8),
    (70.0, 10.0),
    (80.0, 12.5),
    (90.0, 15.0),
    (100.0, 18.0),
    (110.0, 23.0),
    (120.0, 27.5),
    (130.0, 32.0),
    (140.0, 38.0),
    (150.0, 45.0),
    (160.0, 52.0),
    (170.0, 60.0),
    (180.0, 70.0),
    (190.0, 81.0),
    (200.0, 92.5),
    (210.0, 104.0),
    (220.0, 117.0),
    (230.0, 133.0),
    (240.0, 148.0),
    (250.0, 162.0),
)

# ------------------------------------------------------------------
# Transport
# ------------------------------------------------------------------

DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTTS_PORT = 8883
MQTT_QOS = 1
MQTT_CONNECT_RETRY_SECONDS = 5.0

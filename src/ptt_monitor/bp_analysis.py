# Blood pressure interpretation and compensation helpers


def compensate_for_age(raw_bp, age):
    """Scale a BP value by +0.5 % per year relative to age 30"""
    return raw_bp * (1.0 + (age - 30) * 0.005)


def compensate_for_gender(raw_bp, is_male):
    return raw_bp * (1.02 if is_male else 1.0)


def interpret_bp_reading(systolic, diastolic):
    """
    AHA category for a reading.

    Returns:
        One of "Normal", "Elevated", "Stage 1 Hypertension",
        "Stage 2 Hypertension", "Hypertensive Crisis".
    """
    if systolic > 180 or diastolic > 120:
        return "Hypertensive Crisis"
    if systolic >= 140 or diastolic >= 90:
        return "Stage 2 Hypertension"
    if systolic >= 130 or diastolic >= 80:
        return "Stage 1 Hypertension"
    if systolic >= 120:
        return "Elevated"
    return "Normal"


def is_hypertensive(systolic, diastolic):
    return systolic >= 130 or diastolic >= 80


def calculate_pulse_pressure(systolic, diastolic):
    return systolic - diastolic


def calculate_mean_arterial_pressure(systolic, diastolic):
    # Diastole lasts about two thirds of the cardiac cycle
    return diastolic + (systolic - diastolic) / 3.0

"""
PTT to blood pressure calibration.

Blood pressure is modelled as linear in PTT, separately for systolic and
diastolic: bp = slope * ptt + intercept. Until two reference readings exist
the population model (scaled for age and gender) is used.
"""
import logging
from typing import List, Tuple

import numpy as np

from .bp_analysis import compensate_for_age, compensate_for_gender
from .config import (
    DIASTOLIC_INTERCEPT,
    DIASTOLIC_SLOPE,
    MAX_CALIBRATION_POINTS,
    MIN_CALIBRATION_POINTS,
    MIN_PTT_SPREAD_MS,
    REFERENCE_DIASTOLIC_RANGE,
    REFERENCE_SYSTOLIC_RANGE,
    SYSTOLIC_INTERCEPT,
    SYSTOLIC_SLOPE,
)
from .data_types import (
    CalibrationCoefficients,
    CalibrationMode,
    CalibrationPoint,
    CalibrationStatus,
    UserProfile,
)

logger = logging.getLogger(__name__)


def population_coefficients(profile: UserProfile) -> CalibrationCoefficients:
    """Population PTT model scaled by the age and gender compensation factors"""
    scale = compensate_for_gender(compensate_for_age(1.0, profile.age), profile.is_male)
    return CalibrationCoefficients(
        systolic_slope=SYSTOLIC_SLOPE * scale,
        systolic_intercept=SYSTOLIC_INTERCEPT * scale,
        diastolic_slope=DIASTOLIC_SLOPE * scale,
        diastolic_intercept=DIASTOLIC_INTERCEPT * scale,
    )


class CalibrationEngine:
    """Holds up to MAX_CALIBRATION_POINTS reference readings and the active fit"""

    def __init__(self, profile: UserProfile = UserProfile()):
        # Columns: ptt, systolic, diastolic, timestamp
        self._points = np.zeros((MAX_CALIBRATION_POINTS, 4), dtype=np.float64)
        self._count = 0
        self.mode = CalibrationMode.DEFAULT
        self._population = population_coefficients(profile)
        self.coefficients = self._population

    @property
    def count(self) -> int:
        return self._count

    @property
    def needs_calibration(self) -> bool:
        return self._count < MIN_CALIBRATION_POINTS

    @property
    def status(self) -> CalibrationStatus:
        return CalibrationStatus(self.mode, self._count)

    @property
    def points(self) -> List[CalibrationPoint]:
        return [
            CalibrationPoint(float(p[0]), float(p[1]), float(p[2]), int(p[3]))
            for p in self._points[:self._count]
        ]

    def add_point(self, ptt: float, systolic: float, diastolic: float, timestamp: int) -> bool:
        """
        Store a reference reading taken at the given PTT and refit.

        When the store is full the oldest point is evicted.

        Returns:
            False if the reading is implausible; nothing is stored then.
        """
        sys_low, sys_high = REFERENCE_SYSTOLIC_RANGE
        dia_low, dia_high = REFERENCE_DIASTOLIC_RANGE
        if not ptt > 0:
            logger.warning(f"Calibration rejected: invalid PTT {ptt}")
            return False
        if not (sys_low <= systolic <= sys_high and dia_low <= diastolic <= dia_high):
            logger.warning(f"Calibration rejected: reference {systolic}/{diastolic} out of range")
            return False
        if not systolic > diastolic:
            logger.warning(f"Calibration rejected: systolic {systolic} <= diastolic {diastolic}")
            return False

        if self._count == MAX_CALIBRATION_POINTS:
            evicted = self._points[0].copy()
            self._points[:-1] = self._points[1:]
            self._count -= 1
            logger.info(f"Calibration store full, evicted point PTT={evicted[0]:.1f}ms "
                        f"BP={evicted[1]:.0f}/{evicted[2]:.0f}")

        self._points[self._count] = (ptt, systolic, diastolic, timestamp)
        self._count += 1
        logger.info(f"Calibration point added: PTT={ptt:.1f}ms, BP={systolic:.0f}/{diastolic:.0f} "
                    f"({self._count}/{MAX_CALIBRATION_POINTS})")

        self.update()
        return True

    def update(self) -> bool:
        """Refit the coefficients from the stored points (needs at least two)"""
        if self._count < MIN_CALIBRATION_POINTS:
            return False

        ptt = self._points[:self._count, 0]
        systolic = self._points[:self._count, 1]
        diastolic = self._points[:self._count, 2]

        if np.ptp(ptt) < MIN_PTT_SPREAD_MS:
            # All readings at about the same PTT: the slope is not observable,
            # so keep the population slope and fit the offset only
            sys_slope = self._population.systolic_slope
            dia_slope = self._population.diastolic_slope
            sys_intercept = float(np.mean(systolic - sys_slope * ptt))
            dia_intercept = float(np.mean(diastolic - dia_slope * ptt))
            logger.info(f"PTT spread below {MIN_PTT_SPREAD_MS}ms, fitting offset only")
        else:
            sys_slope, sys_intercept = np.polyfit(ptt, systolic, 1)
            dia_slope, dia_intercept = np.polyfit(ptt, diastolic, 1)

        self.coefficients = CalibrationCoefficients(
            float(sys_slope), float(sys_intercept), float(dia_slope), float(dia_intercept)
        )
        self.mode = CalibrationMode.PERSONALIZED
        logger.info(f"Calibration updated: Sys={sys_slope:.3f}*PTT+{sys_intercept:.1f}, "
                    f"Dia={dia_slope:.3f}*PTT+{dia_intercept:.1f}")
        return True

    def apply_population_defaults(self, profile: UserProfile) -> bool:
        """
        Install the population model for this profile.

        Refused (returns False) while a personalized fit is active; the
        profile is still remembered for later fallbacks.
        """
        self._population = population_coefficients(profile)
        if self.mode == CalibrationMode.PERSONALIZED:
            return False
        self.coefficients = self._population
        logger.info(f"Population calibration applied (age={profile.age}, "
                    f"{'male' if profile.is_male else 'female'})")
        return True

    def estimate(self, ptt: float) -> Tuple[float, float]:
        """Return (systolic, diastolic) in mmHg for a PTT in ms"""
        c = self.coefficients
        return (c.systolic_slope * ptt + c.systolic_intercept,
                c.diastolic_slope * ptt + c.diastolic_intercept)

    def clear(self):
        self._points.fill(0)
        self._count = 0
        self.mode = CalibrationMode.DEFAULT
        self.coefficients = self._population
        logger.info("Calibration cleared")

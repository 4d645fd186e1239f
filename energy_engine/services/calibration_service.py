"""
Circadian calibration service.
Learns a personal acrophase (peak-alertness hour) from completion samples and
exposes it as a shift on the default cosinor alertness curve.
"""
import math
from collections import Counter
from typing import Dict, List, Optional

from energy_engine.constants import (
    ACROPHASE_MAX,
    ACROPHASE_MIN,
    CALIBRATION_FULL_WEIGHT_SAMPLES,
    CALIBRATION_HOUR_END,
    CALIBRATION_HOUR_START,
    CALIBRATION_MEDIUM_SAMPLES,
    CALIBRATION_PEAK_HOURS,
    CURVE_MAX,
    CURVE_MIN,
    DEFAULT_ACROPHASE,
    DEFAULT_AMPLITUDE,
    DEFAULT_LOAD_SENSITIVITY,
    DEFAULT_MESOR,
    DEFAULT_WEEKDAY_PEAK,
    DEFAULT_WEEKEND_PEAK,
    EVENING_BOOST,
    EVENING_HOURS,
    EVENING_RATIO,
    FOCUSED_LOAD_SENSITIVITY,
    HIGH_CONCURRENCY,
    HIGH_PRIORITY_LEVELS,
    LOW_CONCURRENCY,
    MAX_CALIBRATION_SAMPLES,
    MILD_DIP_RATIO,
    MILD_DIP_SEVERITY,
    MIN_CONCURRENCY_SAMPLES,
    MIN_MORNING_SAMPLES,
    MIN_WEEKDAY_SAMPLES,
    MIN_WEEKEND_SAMPLES,
    MORNING_HOURS,
    MULTITASK_RATIO,
    MULTITASKER_LOAD_SENSITIVITY,
    POST_LUNCH_HOURS,
    STRONG_DIP_RATIO,
    STRONG_DIP_SEVERITY,
)
from energy_engine.schemas import CalibrationProfile, CalibrationSample, EngineConfig
from energy_engine.services.date_service import DateService

HIGH_PRIORITY_WEIGHT = 3
BEST_HOURS_COUNT = 3
LATE_PEAK_SHIFT = 1.0
STRONG_DIP_INSIGHT = 0.08
MILD_DIP_INSIGHT = -0.02
EVENING_INSIGHT = 0.08
MULTITASKER_INSIGHT = 0.8
FOCUSED_INSIGHT = 1.2


def format_hour(hour: int) -> str:
    """12-hour clock label, e.g. 9 -> '9 AM', 14 -> '2 PM'"""
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display} {suffix}"


class CalibrationService:
    """Service for personalized circadian calibration"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    @staticmethod
    def record_sample(
        samples: List[CalibrationSample],
        sample: CalibrationSample
    ) -> List[CalibrationSample]:
        """Append a sample keeping chronological order and the retention cap"""
        updated = sorted(samples + [sample], key=lambda s: s.timestamp)
        return updated[-MAX_CALIBRATION_SAMPLES:]

    @staticmethod
    def record_timing_feedback(samples: List[CalibrationSample], rating: int) -> List[CalibrationSample]:
        """Attach a 1-5 timing rating to the most recent sample (no-op without samples)"""
        if not samples:
            return samples
        return samples[:-1] + [samples[-1].model_copy(update={"user_rating": rating})]

    def is_active(self, samples: List[CalibrationSample]) -> bool:
        return len(samples) >= self.config.calibration_min_samples

    def completions_by_hour(self, samples: List[CalibrationSample]) -> Dict[int, int]:
        """Sample count per local hour (all 24 hours present)"""
        counts = {hour: 0 for hour in range(24)}
        for sample in samples:
            counts[DateService.local_hour(sample.timestamp, self.config.timezone)] += 1
        return counts

    def hour_scores(self, samples: List[CalibrationSample]) -> List[tuple[int, float]]:
        """
        Weighted completion quality per waking hour (06-22).

        Each sample weighs its resonance outcome (0-1); high-priority
        completions count three times. Sorted best first, ties by hour.
        """
        scores = {hour: 0.0 for hour in range(CALIBRATION_HOUR_START, CALIBRATION_HOUR_END + 1)}
        for sample in samples:
            hour = DateService.local_hour(sample.timestamp, self.config.timezone)
            if hour not in scores:
                continue
            weight = max(0.0, min(100.0, sample.resonance_outcome)) / 100
            if (sample.priority or "").lower() in HIGH_PRIORITY_LEVELS:
                weight *= HIGH_PRIORITY_WEIGHT
            scores[hour] += weight

        return sorted(scores.items(), key=lambda item: (-item[1], item[0]))

    def estimate_acrophase(self, samples: List[CalibrationSample]) -> float:
        """
        Personal acrophase in local hours, clamped to 06-18.

        Formula: default + min(1, n / 50) × (peak − default), where peak is
        the score-weighted mean of the five best hours. Below the activation
        threshold the default acrophase is returned.
        """
        if not self.is_active(samples):
            return DEFAULT_ACROPHASE

        top = [(hour, score) for hour, score in self.hour_scores(samples)[:CALIBRATION_PEAK_HOURS] if score > 0]
        total_weight = sum(score for _, score in top)
        if total_weight <= 0:
            return DEFAULT_ACROPHASE

        estimated_peak = sum(hour * score for hour, score in top) / total_weight
        trust = min(1.0, len(samples) / CALIBRATION_FULL_WEIGHT_SAMPLES)
        acrophase = DEFAULT_ACROPHASE + trust * (estimated_peak - DEFAULT_ACROPHASE)
        return round(max(ACROPHASE_MIN, min(ACROPHASE_MAX, acrophase)), 2)

    def acrophase_shift(self, samples: List[CalibrationSample]) -> float:
        """Hours to shift the default alertness curve (0 when inactive)"""
        return round(self.estimate_acrophase(samples) - DEFAULT_ACROPHASE, 2)

    def _count_in_hours(self, samples: List[CalibrationSample], hours: tuple[int, int]) -> int:
        start, end = hours
        return sum(
            1 for sample in samples
            if start <= DateService.local_hour(sample.timestamp, self.config.timezone) <= end
        )

    def post_lunch_dip_severity(self, samples: List[CalibrationSample]) -> float:
        """
        How much the early afternoon lags the morning.

        Compares 13-14h completions to 09-11h completions once there are
        more than five morning samples and any afternoon ones: a ratio under
        0.3 is a strong dip, over 0.7 barely any dip.
        """
        morning = self._count_in_hours(samples, MORNING_HOURS)
        lunch = self._count_in_hours(samples, POST_LUNCH_HOURS)
        if morning < MIN_MORNING_SAMPLES or lunch == 0:
            return 0.0

        ratio = lunch / morning
        if ratio < STRONG_DIP_RATIO:
            return STRONG_DIP_SEVERITY
        if ratio > MILD_DIP_RATIO:
            return MILD_DIP_SEVERITY
        return 0.0

    def evening_boost(self, samples: List[CalibrationSample]) -> float:
        """Boost for evening types: over 30% of completions between 17 and 21h"""
        if len(samples) < CALIBRATION_MEDIUM_SAMPLES:
            return 0.0
        if self._count_in_hours(samples, EVENING_HOURS) / len(samples) > EVENING_RATIO:
            return EVENING_BOOST
        return 0.0

    @staticmethod
    def cognitive_load_sensitivity(samples: List[CalibrationSample]) -> float:
        """
        Multiplier for the cognitive load penalty.

        Compares completions made with more than three concurrent tasks to
        those made with at most two. Users who keep finishing work under load
        get a lighter penalty; needs five samples on each side.
        """
        busy = sum(1 for sample in samples if sample.concurrent_tasks > HIGH_CONCURRENCY)
        calm = sum(1 for sample in samples if sample.concurrent_tasks <= LOW_CONCURRENCY)
        if busy < MIN_CONCURRENCY_SAMPLES or calm < MIN_CONCURRENCY_SAMPLES:
            return DEFAULT_LOAD_SENSITIVITY
        if busy / calm > MULTITASK_RATIO:
            return MULTITASKER_LOAD_SENSITIVITY
        return FOCUSED_LOAD_SENSITIVITY

    def _busiest_hour(self, samples: List[CalibrationSample], minimum: int, default: int) -> int:
        if len(samples) < minimum:
            return default
        counts = Counter(DateService.local_hour(sample.timestamp, self.config.timezone) for sample in samples)
        return min(counts, key=lambda hour: (-counts[hour], hour))

    def weekday_weekend_peaks(self, samples: List[CalibrationSample]) -> tuple[int, int]:
        """Busiest local hour on weekdays and on weekends, ties to the earlier hour"""
        weekday, weekend = [], []
        for sample in samples:
            if DateService.local_date(sample.timestamp, self.config.timezone).weekday() >= 5:
                weekend.append(sample)
            else:
                weekday.append(sample)
        return (
            self._busiest_hour(weekday, MIN_WEEKDAY_SAMPLES, DEFAULT_WEEKDAY_PEAK),
            self._busiest_hour(weekend, MIN_WEEKEND_SAMPLES, DEFAULT_WEEKEND_PEAK),
        )

    @staticmethod
    def average_timing_rating(samples: List[CalibrationSample]) -> Optional[float]:
        ratings = [sample.user_rating for sample in samples if sample.user_rating is not None]
        if not ratings:
            return None
        return round(sum(ratings) / len(ratings), 2)

    @staticmethod
    def circadian_alertness(hour: float, shift: float = 0.0) -> float:
        """
        Cosinor alertness for an hour of day.

        Formula: MESOR + A × cos(2π × (t − (acrophase + shift)) / 24),
        clamped to 0.30-0.95.
        """
        radians = 2 * math.pi * (hour - (DEFAULT_ACROPHASE + shift)) / 24
        value = DEFAULT_MESOR + DEFAULT_AMPLITUDE * math.cos(radians)
        return max(CURVE_MIN, min(CURVE_MAX, value))

    def circadian_curve(self, samples: List[CalibrationSample]) -> Dict[int, float]:
        """Alertness for every hour of the day using the current shift"""
        shift = self.acrophase_shift(samples)
        return {hour: round(self.circadian_alertness(hour, shift), 3) for hour in range(24)}

    @staticmethod
    def confidence_level(sample_count: int) -> str:
        if sample_count < CALIBRATION_MEDIUM_SAMPLES:
            return "low"
        if sample_count < CALIBRATION_FULL_WEIGHT_SAMPLES:
            return "medium"
        return "high"

    def build_profile(self, samples: List[CalibrationSample]) -> CalibrationProfile:
        """Snapshot of the calibration for rendering"""
        scored = [(hour, score) for hour, score in self.hour_scores(samples) if score > 0]
        acrophase = self.estimate_acrophase(samples)
        weekday_peak, weekend_peak = self.weekday_weekend_peaks(samples)

        profile = CalibrationProfile(
            active=self.is_active(samples),
            acrophase=acrophase,
            acrophase_shift=round(acrophase - DEFAULT_ACROPHASE, 2),
            amplitude=DEFAULT_AMPLITUDE,
            mesor=DEFAULT_MESOR,
            sample_count=len(samples),
            confidence_level=self.confidence_level(len(samples)),
            best_hours=[hour for hour, _ in scored[:BEST_HOURS_COUNT]],
            worst_hours=[hour for hour, _ in scored[-BEST_HOURS_COUNT:]][::-1],
            completions_by_hour=self.completions_by_hour(samples),
            post_lunch_dip_severity=self.post_lunch_dip_severity(samples),
            evening_boost=self.evening_boost(samples),
            cognitive_load_sensitivity=self.cognitive_load_sensitivity(samples),
            weekday_peak=weekday_peak,
            weekend_peak=weekend_peak,
            avg_timing_rating=self.average_timing_rating(samples),
        )
        return profile.model_copy(update={"insights": self.insights(profile)})

    def insights(self, profile: CalibrationProfile) -> List[str]:
        """Human-readable observations about the calibration"""
        if not profile.active:
            needed = self.config.calibration_min_samples - profile.sample_count
            return [
                f"Keep completing tasks to help me learn your patterns. "
                f"I need about {needed} more completions."
            ]

        insights = []
        if profile.best_hours:
            hours = ", ".join(format_hour(hour) for hour in profile.best_hours)
            insights.append(f"Your peak productivity hours are {hours}. Schedule your hardest tasks then.")

        peak = math.floor(profile.acrophase + 0.5)
        if profile.acrophase_shift >= LATE_PEAK_SHIFT:
            insights.append(
                f"You tend to peak later than average (around {peak}:00). "
                f"I've adjusted your curve accordingly."
            )
        elif profile.acrophase_shift <= -LATE_PEAK_SHIFT:
            insights.append(
                f"You're an early peaker (around {peak}:00). "
                f"I've shifted your optimal windows earlier."
            )

        if profile.post_lunch_dip_severity > STRONG_DIP_INSIGHT:
            insights.append(
                "You have a strong post-lunch energy dip. "
                "Consider lighter tasks or a short walk between 1-3 PM."
            )
        elif profile.post_lunch_dip_severity < MILD_DIP_INSIGHT:
            insights.append("You handle the afternoon well! Your post-lunch dip is minimal compared to most people.")

        if profile.evening_boost > EVENING_INSIGHT:
            insights.append("You show strong evening productivity. 5-9 PM is a good window for demanding work.")

        if profile.cognitive_load_sensitivity < MULTITASKER_INSIGHT:
            insights.append("You handle task switching well. Juggling several open tasks costs you little.")
        elif profile.cognitive_load_sensitivity > FOCUSED_INSIGHT:
            insights.append("Deep focus works best for you. I recommend limiting concurrent tasks to 2-3 at a time.")

        if profile.confidence_level == "high":
            insights.append(
                f"Calibration confidence: HIGH ({profile.sample_count} data points). "
                f"Your personalized curve is well-tuned."
            )
        elif profile.confidence_level == "medium":
            insights.append(
                f"Calibration confidence: MEDIUM ({profile.sample_count} data points). "
                f"Getting more accurate with each task you complete."
            )
        return insights

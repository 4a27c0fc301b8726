"""Snapshot and time-series analysis: pack detection and stabilization."""

from analysis.pack_detector import (
    VehicleSnapshot,
    Pack,
    PackDetectionResult,
    circular_gap,
    detect_packs,
    count_packs,
    multi_vehicle_packs,
    pack_lengths,
    average_pack_length,
)
from analysis.stabilization import (
    StabilizationResult,
    detect_stabilization,
    moving_averages,
    extract_series,
)

__all__ = [
    'VehicleSnapshot',
    'Pack',
    'PackDetectionResult',
    'circular_gap',
    'detect_packs',
    'count_packs',
    'multi_vehicle_packs',
    'pack_lengths',
    'average_pack_length',
    'StabilizationResult',
    'detect_stabilization',
    'moving_averages',
    'extract_series',
]

"""
Utility functions module.

Time Semantics:
- All stored timestamps are timezone-aware UTC datetimes
- Elapsed and remaining durations are expressed in minutes
- Wall-clock deltas are counted in whole minutes unless configured otherwise
- The current time always comes from an injectable clock
"""

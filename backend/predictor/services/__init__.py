"""
Prediction services.

The bracket modules (group_standings, third_place_ranker,
third_place_allocation, bracket_resolver, knockout_phase, knockout_validator)
are pure: no database, no HTTP, same input gives the same output.
prediction_service is the only module that reads and writes the session.
"""

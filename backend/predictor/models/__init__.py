from predictor.models.best_third_place_prediction import BestThirdPlacePrediction
from predictor.models.group import Group
from predictor.models.group_standing_prediction import GroupStandingPrediction
from predictor.models.match import Match
from predictor.models.match_prediction import MatchPrediction
from predictor.models.prediction import Prediction
from predictor.models.team import Team

__all__ = [
    "Group",
    "Team",
    "Match",
    "Prediction",
    "MatchPrediction",
    "GroupStandingPrediction",
    "BestThirdPlacePrediction",
]

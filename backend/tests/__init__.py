# Force SQLModel table registration at test discovery time
from predictor.models import (  # noqa: F401
    BestThirdPlacePrediction,
    Group,
    GroupStandingPrediction,
    Match,
    MatchPrediction,
    Prediction,
    Team,
)

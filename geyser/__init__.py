"""Geyser: wiki article recommendations from user votes.

This package learns a biased latent factor model from up/down votes with
stochastic gradient descent and ranks articles for users and users for
articles.

Modules:
    recommender: rating store, model, training, ranking and persistence
    api: FastAPI service exposing the rankings
    cli: command-line interface (update, train, predict, advertise)
"""

__version__ = "0.2.0"

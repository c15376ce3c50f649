"""Command-line interface for Geyser.

Subcommands:
    update     rebuild the vote database from a scraped vote export
    train      train the latent factor model on the vote database
    predict    list the articles a user will most likely up-vote
    advertise  list the users most likely to up-vote an article

Example:
    $ geyser update --votes data/votes.csv --from 6000 --to 7999
    $ geyser train --latent-factors 30 --iterations 120
    $ geyser predict Alice Bob --top 5
    $ geyser advertise scp-6001
"""

import argparse
import logging
import sys
from typing import List, Optional

import pandas as pd

from geyser import __version__
from geyser.recommender.errors import GeyserError, NotFound
from geyser.recommender.infer import (
    DEFAULT_TOP_N,
    Recommendation,
    advertise_article,
    recommend_articles,
)
from geyser.recommender.ingest import (
    DEFAULT_FIRST_ARTICLE,
    DEFAULT_LAST_ARTICLE,
    build_store,
)
from geyser.recommender.train import (
    DEFAULT_ITERATIONS,
    DEFAULT_LATENT_FACTORS,
    DEFAULT_LEARNING_RATE,
    DEFAULT_RANDOM_STATE,
    DEFAULT_REGULARIZATION,
    TrainingConfig,
    train_from_database,
)
from geyser.recommender.utils import (
    DEFAULT_DATA_DIR,
    DEFAULT_MODEL_DIR,
    load_model_artifacts,
    save_store,
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the command line.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise, use INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="geyser",
        description="Recommend wiki articles from user votes with a latent factor model.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging (DEBUG level)"
    )
    parser.add_argument(
        "--data-dir",
        default=DEFAULT_DATA_DIR,
        help=f"Directory of the vote database (default: {DEFAULT_DATA_DIR})",
    )
    parser.add_argument(
        "--model-dir",
        default=DEFAULT_MODEL_DIR,
        help=f"Directory of the trained model (default: {DEFAULT_MODEL_DIR})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    update = subparsers.add_parser(
        "update",
        help="Rebuild the vote database. Always overwrites the existing database.",
    )
    update.add_argument(
        "--votes", required=True, help="CSV export with user, article and vote columns"
    )
    update.add_argument(
        "-f",
        "--from",
        dest="first",
        type=int,
        default=DEFAULT_FIRST_ARTICLE,
        help=f"The article number to start from, inclusive (default: {DEFAULT_FIRST_ARTICLE})",
    )
    update.add_argument(
        "-t",
        "--to",
        dest="last",
        type=int,
        default=DEFAULT_LAST_ARTICLE,
        help=f"The article number to end at, inclusive (default: {DEFAULT_LAST_ARTICLE})",
    )

    train = subparsers.add_parser("train", help="Train the model")
    train.add_argument(
        "-l",
        "--latent-factors",
        type=int,
        default=DEFAULT_LATENT_FACTORS,
        help=f"Number of latent factors (default: {DEFAULT_LATENT_FACTORS})",
    )
    train.add_argument(
        "-i",
        "--iterations",
        type=int,
        default=DEFAULT_ITERATIONS,
        help=f"Number of training epochs (default: {DEFAULT_ITERATIONS})",
    )
    train.add_argument(
        "-r",
        "--learning-rate",
        type=float,
        default=DEFAULT_LEARNING_RATE,
        help=f"SGD learning rate (default: {DEFAULT_LEARNING_RATE})",
    )
    train.add_argument(
        "-o",
        "--regularization",
        type=float,
        default=DEFAULT_REGULARIZATION,
        help=f"L2 regularization (default: {DEFAULT_REGULARIZATION})",
    )
    train.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_RANDOM_STATE,
        help=f"Random seed for reproducibility (default: {DEFAULT_RANDOM_STATE})",
    )
    train.add_argument(
        "--no-shuffle", action="store_true", help="Visit votes in stored order every epoch"
    )

    predict = subparsers.add_parser(
        "predict", help="Predict top votes on articles for users"
    )
    predict.add_argument(
        "-t",
        "--top",
        type=int,
        default=DEFAULT_TOP_N,
        help=f"The number of top articles to predict (default: {DEFAULT_TOP_N})",
    )
    predict.add_argument("users", nargs="+", metavar="USER")

    advertise = subparsers.add_parser(
        "advertise",
        help="Predict which users will most likely vote positive on articles",
    )
    advertise.add_argument(
        "-t",
        "--top",
        type=int,
        default=DEFAULT_TOP_N,
        help=f"The number of top users to predict (default: {DEFAULT_TOP_N})",
    )
    advertise.add_argument("articles", nargs="+", metavar="ARTICLE")

    return parser


def format_recommendations(recommendations: List[Recommendation], label: str) -> str:
    """Render recommendations as a numbered table."""
    if not recommendations:
        return "  (nothing to recommend)"

    df = pd.DataFrame(recommendations, columns=[label, "predicted vote"])
    df.index = range(1, len(df) + 1)
    return df.to_string(float_format=lambda score: f"{score:.2f}")


def run_update(args: argparse.Namespace) -> int:
    store = build_store(args.votes, first=args.first, last=args.last)
    save_store(store, args.data_dir)

    num_users, num_items, num_votes = store.size()
    print(f"Database updated: {num_users} users, {num_items} articles, {num_votes} votes")
    return 0


def run_train(args: argparse.Namespace) -> int:
    config = TrainingConfig(
        latent_factors=args.latent_factors,
        iterations=args.iterations,
        learning_rate=args.learning_rate,
        regularization=args.regularization,
        random_state=args.seed,
        shuffle=not args.no_shuffle,
    )
    model = train_from_database(args.data_dir, args.model_dir, config)

    num_users, num_items, latent_factors = model.dimensions
    print(
        f"Trained model with {latent_factors} latent factors on "
        f"{num_users} users and {num_items} articles"
    )
    return 0


def run_predict(args: argparse.Namespace) -> int:
    model, store = load_model_artifacts(args.model_dir)

    exit_code = 0
    for user in args.users:
        try:
            recommendations = recommend_articles(model, store, user, args.top)
        except NotFound:
            print(f"User {user} not found.")
            exit_code = 1
        else:
            print(f"User {user} will most likely upvote those articles:")
            print(format_recommendations(recommendations, "article"))
        print()

    return exit_code


def run_advertise(args: argparse.Namespace) -> int:
    model, store = load_model_artifacts(args.model_dir)

    exit_code = 0
    for article in args.articles:
        try:
            recommendations = advertise_article(model, store, article, args.top)
        except NotFound:
            print(f"Article {article} not found.")
            exit_code = 1
        else:
            print(f"{article} will most likely be upvoted by:")
            print(format_recommendations(recommendations, "user"))
        print()

    return exit_code


COMMANDS = {
    "update": run_update,
    "train": run_train,
    "predict": run_predict,
    "advertise": run_advertise,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line.

    Returns:
        Exit code: 0 on success, 1 on error, 130 when interrupted.
    """
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        return COMMANDS[args.command](args)

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1
    except GeyserError as e:
        logger.error(f"{type(e).__name__}: {e.message}")
        return 1
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning(f"{args.command} interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Loading of scraped wiki votes.

Votes are read from a CSV export with one row per vote and the columns
``user``, ``article`` and ``vote``, plus an optional ``page_id`` column with
the article's numeric wiki page id. Votes are ``+``/``-`` as shown on the
wiki's rating module; booleans and numbers are accepted as well.
"""

import logging
from pathlib import Path
from typing import Hashable, Iterator, Optional, Tuple, Union

import pandas as pd

from geyser.recommender.store import RatingStore

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_FIRST_ARTICLE = 6000
DEFAULT_LAST_ARTICLE = 7999

USER_COLUMN = "user"
ARTICLE_COLUMN = "article"
VOTE_COLUMN = "vote"
PAGE_ID_COLUMN = "page_id"

VoteRecord = Tuple[Hashable, Hashable, object]


def article_name(number: int) -> str:
    """Wiki page name of an SCP article, e.g. ``scp-049`` or ``scp-6000``."""
    return f"scp-{number:03d}"


def read_votes_csv(
    csv_path: Union[str, Path],
    first: Optional[int] = None,
    last: Optional[int] = None,
) -> pd.DataFrame:
    """Read a vote export into a DataFrame.

    Rows without a user name belong to deleted accounts and are dropped.
    When ``first`` and ``last`` are given only the articles
    ``scp-first`` .. ``scp-last`` (inclusive) are kept.

    Args:
        csv_path: Path to the CSV export.
        first: First article number to keep, inclusive.
        last: Last article number to keep, inclusive.

    Returns:
        DataFrame with the ``user``, ``article`` and ``vote`` columns, and
        ``page_id`` when the export has it.

    Raises:
        FileNotFoundError: If CSV file does not exist.
        ValueError: If CSV is missing required columns, a page id is not a
            number or the range is empty.
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    if first is not None and last is not None and first > last:
        raise ValueError(f"Empty article range: {first}..{last}")

    logger.info(f"Loading votes from {csv_path}")
    df = pd.read_csv(
        csv_file,
        dtype={USER_COLUMN: str, ARTICLE_COLUMN: str},
        keep_default_na=False,
        na_values={
            USER_COLUMN: [""],
            ARTICLE_COLUMN: [""],
            VOTE_COLUMN: [""],
            PAGE_ID_COLUMN: [""],
        },
    )

    required_columns = {USER_COLUMN, ARTICLE_COLUMN, VOTE_COLUMN}
    if not required_columns.issubset(df.columns):
        missing = required_columns - set(df.columns)
        raise ValueError(f"CSV missing required columns: {missing}")

    n_rows = len(df)
    df = df.dropna(subset=[USER_COLUMN])
    df[USER_COLUMN] = df[USER_COLUMN].str.strip()
    df = df[df[USER_COLUMN] != ""]
    if len(df) < n_rows:
        logger.info(f"Dropped {n_rows - len(df)} votes from deleted accounts")

    if first is not None or last is not None:
        lo = DEFAULT_FIRST_ARTICLE if first is None else first
        hi = DEFAULT_LAST_ARTICLE if last is None else last
        wanted = {article_name(number) for number in range(lo, hi + 1)}
        df = df[df[ARTICLE_COLUMN].isin(wanted)]
        logger.info(f"Kept {len(df)} votes on articles {article_name(lo)}..{article_name(hi)}")

    logger.info(
        f"Loaded {len(df)} votes by {df[USER_COLUMN].nunique()} users "
        f"on {df[ARTICLE_COLUMN].nunique()} articles"
    )

    columns = [USER_COLUMN, ARTICLE_COLUMN, VOTE_COLUMN]
    if PAGE_ID_COLUMN in df.columns:
        # Page ids are optional per row; blank cells stay NaN
        df = df.assign(
            **{PAGE_ID_COLUMN: pd.to_numeric(df[PAGE_ID_COLUMN], errors="raise")}
        )
        columns.append(PAGE_ID_COLUMN)

    return df[columns]


def iter_vote_records(df: pd.DataFrame) -> Iterator[VoteRecord]:
    """Yield ``(user, article, vote)`` records in file order."""
    for user, article, vote in df[[USER_COLUMN, ARTICLE_COLUMN, VOTE_COLUMN]].itertuples(
        index=False, name=None
    ):
        yield user, article, vote


def build_store(
    csv_path: Union[str, Path],
    first: Optional[int] = None,
    last: Optional[int] = None,
) -> RatingStore:
    """Build a fresh rating store from a vote export.

    When the export has a ``page_id`` column the last page id given for each
    article is recorded in the store.

    Example:
        >>> store = build_store("votes.csv", first=6000, last=7999)
        >>> num_users, num_items, num_votes = store.size()
    """
    df = read_votes_csv(csv_path, first=first, last=last)
    store = RatingStore.from_records(iter_vote_records(df))

    if PAGE_ID_COLUMN in df.columns:
        page_ids = df.dropna(subset=[PAGE_ID_COLUMN]).drop_duplicates(
            subset=[ARTICLE_COLUMN], keep="last"
        )
        for article, page_id in page_ids[[ARTICLE_COLUMN, PAGE_ID_COLUMN]].itertuples(
            index=False, name=None
        ):
            store.set_page_id(article, int(page_id))
        logger.info(f"Recorded page ids of {len(page_ids)} articles")

    return store

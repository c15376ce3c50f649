"""Generate a fake vote export for testing and development.

Users and articles get hidden random taste vectors; a user up-votes an
article when their tastes agree, with a little noise, so the export contains
structure a latent factor model can recover. The CSV has the same columns as
a scraped export: user, article, vote.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_votes
        df = generate_fake_votes(num_users=100, num_articles=200)
"""

from pathlib import Path

import numpy as np
import pandas as pd

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_ARTICLES = 100
DEFAULT_NUM_VOTES = 1000
DEFAULT_FIRST_ARTICLE = 6000
DEFAULT_TASTE_DIMENSIONS = 3
DEFAULT_NOISE = 0.3
DEFAULT_SEED = 42


def generate_fake_votes(
    num_users: int = DEFAULT_NUM_USERS,
    num_articles: int = DEFAULT_NUM_ARTICLES,
    num_votes: int = DEFAULT_NUM_VOTES,
    first_article: int = DEFAULT_FIRST_ARTICLE,
    taste_dimensions: int = DEFAULT_TASTE_DIMENSIONS,
    noise: float = DEFAULT_NOISE,
    seed: int = DEFAULT_SEED,
) -> pd.DataFrame:
    """Generate synthetic up/down votes.

    Args:
        num_users: Number of distinct users. Must be positive.
        num_articles: Number of articles, numbered from ``first_article``.
            Must be positive.
        num_votes: Number of votes to draw. At most one vote per
            (user, article) pair is kept, so the result can be shorter.
        first_article: Number of the first article.
        taste_dimensions: Size of the hidden taste vectors.
        noise: Standard deviation of the noise added to each vote's affinity.
        seed: Random seed for reproducibility.

    Returns:
        DataFrame with the columns:
            - user: user name such as ``user-007``
            - article: article name such as ``scp-6001``
            - vote: ``+`` or ``-``

    Raises:
        ValueError: If a count is not positive.
    """
    if num_users <= 0 or num_articles <= 0 or num_votes <= 0:
        raise ValueError("num_users, num_articles, and num_votes must be positive")

    rng = np.random.default_rng(seed)
    user_tastes = rng.normal(size=(num_users, taste_dimensions))
    article_tastes = rng.normal(size=(num_articles, taste_dimensions))

    users = rng.integers(num_users, size=num_votes)
    articles = rng.integers(num_articles, size=num_votes)
    affinity = np.einsum("ij,ij->i", user_tastes[users], article_tastes[articles])
    affinity += rng.normal(scale=noise, size=num_votes)

    df = pd.DataFrame(
        {
            "user": [f"user-{u:03d}" for u in users],
            "article": [f"scp-{first_article + a:03d}" for a in articles],
            "vote": np.where(affinity > 0, "+", "-"),
        }
    )
    return df.drop_duplicates(subset=["user", "article"]).reset_index(drop=True)


def main() -> None:
    """Generate fake votes with default parameters into data/fake_votes.csv."""
    print(f"Generating {DEFAULT_NUM_VOTES} fake votes...")
    print(f"Users: {DEFAULT_NUM_USERS}, Articles: {DEFAULT_NUM_ARTICLES}")

    df = generate_fake_votes()

    data_dir = Path(__file__).parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    output_path = data_dir / "fake_votes.csv"
    df.to_csv(output_path, index=False)

    print("\nData generated successfully!")
    print(f"Saved to: {output_path}")
    print("\nData preview:")
    print(df.head(10))
    print("\nData summary:")
    print(f"  Total votes: {len(df)}")
    print(f"  Unique users: {df['user'].nunique()}")
    print(f"  Unique articles: {df['article'].nunique()}")
    print(f"  Up-votes: {(df['vote'] == '+').sum()}")


if __name__ == "__main__":
    main()

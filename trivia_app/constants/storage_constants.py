"""Storage keys and remote collection names.

Bump the version suffix of a key whenever the stored shape changes so that
old documents are never deserialized into the new models.
"""

QUESTIONS_KEY: str = "trivia_questions_v2"
LEARNING_MODULES_KEY: str = "trivia_learning_modules_v1"
RESULTS_KEY: str = "trivia_results"
STATS_KEY: str = "trivia_stats"
LEARNING_PROGRESS_KEY: str = "trivia_learning_progress"

QUESTIONS_COLLECTION: str = "questions"
LEARNING_MODULES_COLLECTION: str = "learning_modules"
RESULTS_COLLECTION: str = "results"
STATS_COLLECTION: str = "stats"

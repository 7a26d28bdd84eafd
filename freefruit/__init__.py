"""Free Fruit: daily NBA/NFL player projections with Fruit Scores."""

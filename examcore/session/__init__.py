"""Assessment session core: clock, tasks, progress, scoring, submission."""

"""Dashboard API for the presence tracker."""

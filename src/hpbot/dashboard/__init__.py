"""HTTP dashboard for hpbot."""

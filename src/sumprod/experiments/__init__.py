"""Study configuration, runner, replicate harness and artifact contracts."""

"""Interactive quadrotor flight simulator with onboard estimation and attitude control."""

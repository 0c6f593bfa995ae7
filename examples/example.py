"""Example usage of the UAV load balancing package."""

import logging

from uav_load_balancing import AlgorithmType, FairnessPolicy, LoadBalancingOptimizer
from uav_load_balancing.config import AGCTLBConfig, DeploymentRegion, PotentialGameConfig, PSCAConfig
from uav_load_balancing.utils import vector_to_str


def main():
    """Compare the load balancing algorithms on a random snapshot."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    print("UAV Load Balancing Example")
    print("==========================")

    region = DeploymentRegion(x_max=600.0, y_max=600.0, h_min=50.0, h_max=200.0)
    users, stations = LoadBalancingOptimizer.random_layout(
        num_drones=3,
        num_ground=1,
        num_users=30,
        region=region,
        data_rate=2e7,
        seed=42  # For reproducibility
    )

    # Coarser lattice and shorter schedules keep the demo quick
    agctlb = AGCTLBConfig(
        region=region,
        max_outer_iterations=5,
        psca=PSCAConfig(max_outer_iterations=15, max_inner_iterations=30),
        game=PotentialGameConfig(grid_step_x=100.0, grid_step_y=100.0, grid_step_h=50.0, max_iterations=30)
    )
    optimizer = LoadBalancingOptimizer(policy=FairnessPolicy.PROPORTIONAL_FAIR, region=region, agctlb_config=agctlb)

    print("Running all algorithms...")
    outcomes = optimizer.compare_algorithms(users, stations, seed=42)

    print(f"\n{'algorithm':<20} {'objective':>10} {'max load':>10} {'converged':>10}")
    for algorithm, outcome in outcomes.items():
        print(f"{algorithm.value:<20} {outcome.objective:>10.4f} {outcome.max_load:>10.4f} "
              f"{str(outcome.converged):>10}")

    nash = outcomes[AlgorithmType.NASH_EQUILIBRIUM]
    print("\nAGC-TLB station positions:")
    for station, position in zip(stations, nash.positions):
        print(f"  {station.station_id}: {vector_to_str(position, precision=1)}")
    print(f"Feasible: {nash.details['feasible']}")

    shapley = outcomes[AlgorithmType.COOPERATIVE_GAME].details['shapley_values']
    print("\nShapley values:")
    for station_id, value in shapley.items():
        print(f"  {station_id}: {value:.4f}")


if __name__ == '__main__':
    main()

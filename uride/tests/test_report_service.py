from decimal import Decimal

from uride.extensions import db
from uride.services.assignment_service import AssignmentService
from uride.services.driver_service import DriverService
from uride.services.report_service import ReportService
from uride.services.vehicle_service import VehicleService

ADMIN = ('admin-1', 'Asha Admin')


def test_empty_dashboard_is_all_zeros(app):
    stats = ReportService.dashboard_stats()
    assert stats['drivers']['total'] == 0
    assert stats['drivers']['online'] == 0
    assert stats['drivers']['by_status'] == {'pending': 0, 'active': 0, 'suspended': 0, 'inactive': 0}
    assert stats['vehicles']['total'] == 0
    assert stats['earnings']['total_revenue'] == Decimal('0.00')
    assert stats['earnings']['total_rides'] == 0
    assert stats['earnings']['average_rating'] == 0.0
    assert stats['performance']['average_acceptance_rate'] == 0.0
    assert stats['performance']['total_online_hours'] == 0.0
    assert ReportService.top_earners() == []


def test_dashboard_counts_and_sums(make_driver, make_vehicle):
    owner = make_driver('owner')
    fleet = make_driver('fleet')
    make_driver('fleet', approve=False)
    DriverService.set_online(owner.id, True)

    assigned, idle, broken = make_vehicle(), make_vehicle(), make_vehicle()
    AssignmentService.assign(assigned.id, fleet.id, ADMIN)
    VehicleService.set_condition(broken.id, {'condition_status': 'maintenance'}, ADMIN)

    owner.total_earnings = Decimal('100.50')
    owner.total_rides = 3
    owner.acceptance_rate = 80.0
    fleet.total_earnings = Decimal('20.25')
    fleet.total_rides = 1
    db.session.commit()

    stats = ReportService.dashboard_stats()
    assert stats['drivers']['total'] == 3
    assert stats['drivers']['by_status']['active'] == 2
    assert stats['drivers']['by_status']['pending'] == 1
    assert stats['drivers']['by_compensation_kind'] == {'owner': 1, 'fleet': 2}
    assert stats['drivers']['online'] == 1
    assert stats['vehicles']['by_status'] == {
        'available': 1, 'assigned': 1, 'maintenance': 1, 'out_of_service': 0,
    }
    assert stats['vehicles']['by_ownership'] == {'company': 3, 'driver_owned': 0}
    assert stats['earnings']['total_revenue'] == Decimal('120.75')
    assert stats['earnings']['total_rides'] == 4
    assert stats['performance']['average_acceptance_rate'] == 93.33


def test_top_earners_ties_break_on_driver_id(make_driver):
    drivers = [make_driver('owner') for _ in range(4)]
    for driver, earnings in zip(drivers, ['50.00', '75.10', '50.00', '10.00']):
        driver.total_earnings = Decimal(earnings)
    db.session.commit()

    ranking = ReportService.top_earners(limit=3)
    assert [row['driver_id'] for row in ranking] == [drivers[1].id, drivers[0].id, drivers[2].id]
    assert [row['rank'] for row in ranking] == [1, 2, 3]
    assert ranking[0]['total_earnings'] == Decimal('75.10')

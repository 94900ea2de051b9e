# posagent/services/sunmi/diagnostics.py
"""
Account and device diagnostics built on top of the resolving client.

Each probe runs its operations one after another and only reports what it
observed; none of them changes how an operation is resolved.
"""

from typing import Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from posagent.core.logging_config import trace_id_var
from posagent.models.sunmi import (
    CapabilityCheck, CapabilityReport, DeveloperReport, DeviceHealthReport, DISQUALIFYING_CODES,
    HealthTest, OperationResult, Recommendation, ReportTestResult, VendorErrorCode,
)
from posagent.services.sunmi.client import SunmiClient

NO_WORKING_ENDPOINTS = "\n".join([
    "No working API endpoints found.",
    "Possible issues:",
    "  - Your account lacks device management permissions",
    "  - No devices are registered to your account",
    "  - Wrong API credentials or account type",
    "  - API documentation may be outdated",
    "Next steps:",
    "  - Contact Sunmi support to verify account permissions (VAS access)",
    "  - Check if you need to register devices first",
    "  - Verify your API credentials and account type",
])
SOME_ENDPOINTS_WORKING = "Some API endpoints are working. Check individual results above."


def _codes_seen(result: OperationResult) -> Set[int]:
    codes = {a.vendor_code for a in (result.attempts or []) if a.vendor_code is not None}
    if result.vendor_code is not None:
        codes.add(result.vendor_code)
    return codes


def _response_of(result: OperationResult):
    return result.data if result.data is not None else result.error


def generate_recommendation(results: Dict[str, CapabilityCheck]) -> str:
    if not any(check.has_data for check in results.values()):
        return NO_WORKING_ENDPOINTS
    return SOME_ENDPOINTS_WORKING


async def check_account_capabilities(client: SunmiClient) -> CapabilityReport:
    """Probes device list, terminal list and app store list once each."""
    log = logger.bind(trace_id=trace_id_var.get(), service="SunmiDiagnostics")
    tests: Dict[str, Callable[[], Awaitable[OperationResult]]] = {
        "Device List": client.get_device_list,
        "Terminal List": client.get_terminal_list,
        "App List": client.get_app_list,
    }

    results: Dict[str, CapabilityCheck] = {}
    for name, probe in tests.items():
        log.info(f"Probing capability: {name}")
        result = await probe()
        has_data = result.success and result.data is not None and result.vendor_code not in DISQUALIFYING_CODES
        results[name] = CapabilityCheck(
            success=result.success,
            has_data=has_data,
            error=result.error,
            vendor_code=result.vendor_code,
            data=result.data,
        )

    recommendation = generate_recommendation(results)
    log.info(f"Capability probe finished: {sum(c.has_data for c in results.values())}/{len(results)} with data")
    return CapabilityReport(capabilities=results, recommendation=recommendation)


async def check_device_health(client: SunmiClient, device_id: str) -> DeviceHealthReport:
    """Runs detail, status and location lookups for one device, in that order."""
    report = DeviceHealthReport(device_id=device_id)
    probes = [
        ("Device Detail", client.get_device_detail),
        ("Device Status", client.get_device_status),
        ("Device Location", client.get_device_location),
    ]
    for name, probe in probes:
        result = await probe(device_id)
        report.tests.append(HealthTest(
            test=name,
            success=result.success,
            endpoints_tried=result.endpoints_tried,
            response=_response_of(result),
        ))
    return report


def recommendations_for(codes: Set[int]) -> List[Recommendation]:
    recommendations: List[Recommendation] = []
    if VendorErrorCode.ACCESS_FORBIDDEN.value in codes:
        recommendations.append(Recommendation(
            issue=f"Error Code {VendorErrorCode.ACCESS_FORBIDDEN.value} - Access Forbidden",
            description="VAS (Value Added Services) access is required but not granted",
            solution="Contact Sunmi support to enable VAS access for your App ID",
            priority="HIGH",
        ))
    if VendorErrorCode.NOT_FOUND.value in codes:
        recommendations.append(Recommendation(
            issue=f"Error Code {VendorErrorCode.NOT_FOUND.value} - Endpoint Not Found",
            description="API endpoint does not exist or is not accessible",
            solution="Verify API documentation and endpoint availability",
            priority="MEDIUM",
        ))
    return recommendations


async def generate_developer_report(client: SunmiClient, device_id: Optional[str] = None) -> DeveloperReport:
    """
    Collects everything a Sunmi developer needs to troubleshoot the account:
    the device list attempt, the capability probe and, when a device id is
    given, each single-device lookup.
    """
    log = logger.bind(trace_id=trace_id_var.get(), service="SunmiDiagnostics", device_id=device_id)
    log.info("Generating Sunmi API developer report...")
    report = DeveloperReport(app_id=client.credentials.app_id, base_url=client.credentials.base_url)
    codes: Set[int] = set()

    device_list = await client.get_device_list()
    codes |= _codes_seen(device_list)
    report.test_results.append(ReportTestResult(
        test="Device List",
        success=device_list.success,
        endpoints_tried=device_list.endpoints_tried or ([device_list.endpoint] if device_list.endpoint else None),
        response=_response_of(device_list),
        error_code=device_list.vendor_code,
    ))

    capabilities = await check_account_capabilities(client)
    codes |= {c.vendor_code for c in capabilities.capabilities.values() if c.vendor_code is not None}
    report.test_results.append(ReportTestResult(
        test="Account Capabilities",
        success=any(c.has_data for c in capabilities.capabilities.values()),
        response=capabilities.recommendation,
    ))

    if device_id:
        device_tests = [
            ("Device Detail", client.get_device_detail),
            ("Device Status", client.get_device_status),
            ("Device Info", client.get_device_info),
            ("Device Location", client.get_device_location),
            ("Device Network", client.get_device_network),
            ("Device Apps", client.get_device_apps),
        ]
        for name, probe in device_tests:
            try:
                result = await probe(device_id)
            except ValueError as val_err:
                report.test_results.append(ReportTestResult(
                    test=name, device_id=device_id, success=False, error=str(val_err),
                ))
                continue
            codes |= _codes_seen(result)
            report.test_results.append(ReportTestResult(
                test=name,
                device_id=device_id,
                success=result.success,
                endpoints_tried=result.endpoints_tried or ([result.endpoint] if result.endpoint else None),
                response=_response_of(result),
                error_code=result.vendor_code,
            ))

    report.recommendations = recommendations_for(codes)
    log.info(f"Developer report complete: {len(report.test_results)} tests, {len(report.recommendations)} recommendations")
    return report

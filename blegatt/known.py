"""Names and types of assigned GATT services, attributes and descriptors."""

from __future__ import annotations

from typing import NamedTuple


class KnownName(NamedTuple):
    """Specification name and type identifier of an assigned UUID."""

    name: str
    type: str


KNOWN_SERVICES = {
    "1800": KnownName("Generic Access", "org.bluetooth.service.generic_access"),
    "1801": KnownName("Generic Attribute", "org.bluetooth.service.generic_attribute"),
    "1802": KnownName("Immediate Alert", "org.bluetooth.service.immediate_alert"),
    "1803": KnownName("Link Loss", "org.bluetooth.service.link_loss"),
    "1804": KnownName("Tx Power", "org.bluetooth.service.tx_power"),
    "1805": KnownName("Current Time Service", "org.bluetooth.service.current_time"),
    "1806": KnownName("Reference Time Update Service", "org.bluetooth.service.reference_time_update"),
    "1807": KnownName("Next DST Change Service", "org.bluetooth.service.next_dst_change"),
    "1808": KnownName("Glucose", "org.bluetooth.service.glucose"),
    "1809": KnownName("Health Thermometer", "org.bluetooth.service.health_thermometer"),
    "180a": KnownName("Device Information", "org.bluetooth.service.device_information"),
    "180d": KnownName("Heart Rate", "org.bluetooth.service.heart_rate"),
    "180e": KnownName("Phone Alert Status Service", "org.bluetooth.service.phone_alert_service"),
    "180f": KnownName("Battery Service", "org.bluetooth.service.battery_service"),
    "1810": KnownName("Blood Pressure", "org.bluetooth.service.blood_pressuer"),
    "1811": KnownName("Alert Notification Service", "org.bluetooth.service.alert_notification"),
    "1812": KnownName("Human Interface Device", "org.bluetooth.service.human_interface_device"),
    "1813": KnownName("Scan Parameters", "org.bluetooth.service.scan_parameters"),
    "1814": KnownName("Running Speed and Cadence", "org.bluetooth.service.running_speed_and_cadence"),
    "1815": KnownName("Cycling Speed and Cadence", "org.bluetooth.service.cycling_speed_and_cadence"),
}

KNOWN_ATTRIBUTES = {
    "2800": KnownName("Primary Service", "org.bluetooth.attribute.gatt.primary_service_declaration"),
    "2801": KnownName("Secondary Service", "org.bluetooth.attribute.gatt.secondary_service_declaration"),
    "2802": KnownName("Include", "org.bluetooth.attribute.gatt.include_declaration"),
    "2803": KnownName("Characteristic", "org.bluetooth.attribute.gatt.characteristic_declaration"),
}

KNOWN_DESCRIPTORS = {
    "2900": KnownName("Characteristic Extended Properties", "org.bluetooth.descriptor.gatt.characteristic_extended_properties"),
    "2901": KnownName("Characteristic User Description", "org.bluetooth.descriptor.gatt.characteristic_user_description"),
    "2902": KnownName("Client Characteristic Configuration", "org.bluetooth.descriptor.gatt.client_characteristic_configuration"),
    "2903": KnownName("Server Characteristic Configuration", "org.bluetooth.descriptor.gatt.server_characteristic_configuration"),
    "2904": KnownName("Characteristic Presentation Format", "org.bluetooth.descriptor.gatt.characteristic_presentation_format"),
    "2905": KnownName("Characteristic Aggregate Format", "org.bluetooth.descriptor.gatt.characteristic_aggregate_format"),
    "2906": KnownName("Valid Range", "org.bluetooth.descriptor.valid_range"),
    "2907": KnownName("External Report Reference", "org.bluetooth.descriptor.external_report_reference"),
    "2908": KnownName("Report Reference", "org.bluetooth.descriptor.report_reference"),
}

KNOWN_CHARACTERISTICS = {
    "2a00": KnownName("Device Name", "org.bluetooth.characteristic.gap.device_name"),
    "2a01": KnownName("Appearance", "org.bluetooth.characteristic.gap.appearance"),
    "2a02": KnownName("Peripheral Privacy Flag", "org.bluetooth.characteristic.gap.peripheral_privacy_flag"),
    "2a03": KnownName("Reconnection Address", "org.bluetooth.characteristic.gap.reconnection_address"),
    "2a04": KnownName("Peripheral Preferred Connection Parameters", "org.bluetooth.characteristic.gap.peripheral_preferred_connection_parameters"),
    "2a05": KnownName("Service Changed", "org.bluetooth.characteristic.gatt.service_changed"),
    "2a06": KnownName("Alert Level", "org.bluetooth.characteristic.alert_level"),
    "2a07": KnownName("Tx Power Level", "org.bluetooth.characteristic.tx_power_level"),
    "2a08": KnownName("Date Time", "org.bluetooth.characteristic.date_time"),
    "2a09": KnownName("Day of Week", "org.bluetooth.characteristic.day_of_week"),
    "2a0a": KnownName("Day Date Time", "org.bluetooth.characteristic.day_date_time"),
    "2a0c": KnownName("Exact Time 256", "org.bluetooth.characteristic.exact_time_256"),
    "2a0d": KnownName("DST Offset", "org.bluetooth.characteristic.dst_offset"),
    "2a0e": KnownName("Time Zone", "org.bluetooth.characteristic.time_zone"),
    "2a0f": KnownName("Local Time Information", "org.bluetooth.characteristic.local_time_information"),
    "2a11": KnownName("Time with DST", "org.bluetooth.characteristic.time_with_dst"),
    "2a12": KnownName("Time Accuracy", "org.bluetooth.characteristic.time_accuracy"),
    "2a13": KnownName("Time Source", "org.bluetooth.characteristic.time_source"),
    "2a14": KnownName("Reference Time Information", "org.bluetooth.characteristic.reference_time_information"),
    "2a16": KnownName("Time Update Control Point", "org.bluetooth.characteristic.time_update_control_point"),
    "2a17": KnownName("Time Update State", "org.bluetooth.characteristic.time_update_state"),
    "2a18": KnownName("Glucose Measurement", "org.bluetooth.characteristic.glucose_measurement"),
    "2a19": KnownName("Battery Level", "org.bluetooth.characteristic.battery_level"),
    "2a1c": KnownName("Temperature Measurement", "org.bluetooth.characteristic.temperature_measurement"),
    "2a1d": KnownName("Temperature Type", "org.bluetooth.characteristic.temperature_type"),
    "2a1e": KnownName("Intermediate Temperature", "org.bluetooth.characteristic.intermediate_temperature"),
    "2a21": KnownName("Measurement Interval", "org.bluetooth.characteristic.measurement_interval"),
    "2a22": KnownName("Boot Keyboard Input Report", "org.bluetooth.characteristic.boot_keyboard_input_report"),
    "2a23": KnownName("System ID", "org.bluetooth.characteristic.system_id"),
    "2a24": KnownName("Model Number String", "org.bluetooth.characteristic.model_number_string"),
    "2a25": KnownName("Serial Number String", "org.bluetooth.characteristic.serial_number_string"),
    "2a26": KnownName("Firmware Revision String", "org.bluetooth.characteristic.firmware_revision_string"),
    "2a27": KnownName("Hardware Revision String", "org.bluetooth.characteristic.hardware_revision_string"),
    "2a28": KnownName("Software Revision String", "org.bluetooth.characteristic.software_revision_string"),
    "2a29": KnownName("Manufacturer Name String", "org.bluetooth.characteristic.manufacturer_name_string"),
    "2a2a": KnownName("IEEE 11073-20601 Regulatory Certification Data List", "org.bluetooth.characteristic.ieee_11073-20601_regulatory_certification_data_list"),
    "2a2b": KnownName("Current Time", "org.bluetooth.characteristic.current_time"),
    "2a31": KnownName("Scan Refresh", "org.bluetooth.characteristic.scan_refresh"),
    "2a32": KnownName("Boot Keyboard Output Report", "org.bluetooth.characteristic.boot_keyboard_output_report"),
    "2a33": KnownName("Boot Mouse Input Report", "org.bluetooth.characteristic.boot_mouse_input_report"),
    "2a34": KnownName("Glucose Measurement Context", "org.bluetooth.characteristic.glucose_measurement_context"),
    "2a35": KnownName("Blood Pressure Measurement", "org.bluetooth.characteristic.blood_pressure_measurement"),
    "2a36": KnownName("Intermediate Cuff Pressure", "org.bluetooth.characteristic.intermediate_blood_pressure"),
    "2a37": KnownName("Heart Rate Measurement", "org.bluetooth.characteristic.heart_rate_measurement"),
    "2a38": KnownName("Body Sensor Location", "org.bluetooth.characteristic.body_sensor_location"),
    "2a39": KnownName("Heart Rate Control Point", "org.bluetooth.characteristic.heart_rate_control_point"),
    "2a3f": KnownName("Alert Status", "org.bluetooth.characteristic.alert_status"),
    "2a40": KnownName("Ringer Control Point", "org.bluetooth.characteristic.ringer_control_point"),
    "2a41": KnownName("Ringer Setting", "org.bluetooth.characteristic.ringer_setting"),
    "2a42": KnownName("Alert Category ID Bit Mask", "org.bluetooth.characteristic.alert_category_id_bit_mask"),
    "2a43": KnownName("Alert Category ID", "org.bluetooth.characteristic.alert_category_id"),
    "2a44": KnownName("Alert Notification Control Point", "org.bluetooth.characteristic.alert_notification_control_point"),
    "2a45": KnownName("Unread Alert Status", "org.bluetooth.characteristic.unread_alert_status"),
    "2a46": KnownName("New Alert", "org.bluetooth.characteristic.new_alert"),
    "2a47": KnownName("Supported New Alert Category", "org.bluetooth.characteristic.supported_new_alert_category"),
    "2a48": KnownName("Supported Unread Alert Category", "org.bluetooth.characteristic.supported_unread_alert_category"),
    "2a49": KnownName("Blood Pressure Feature", "org.bluetooth.characteristic.blood_pressure_feature"),
    "2a4a": KnownName("HID Information", "org.bluetooth.characteristic.hid_information"),
    "2a4b": KnownName("Report Map", "org.bluetooth.characteristic.report_map"),
    "2a4c": KnownName("HID Control Point", "org.bluetooth.characteristic.hid_control_point"),
    "2a4d": KnownName("Report", "org.bluetooth.characteristic.report"),
    "2a4e": KnownName("Protocol Mode", "org.bluetooth.characteristic.protocol_mode"),
    "2a4f": KnownName("Scan Interval Window", "org.bluetooth.characteristic.scan_interval_window"),
    "2a50": KnownName("PnP ID", "org.bluetooth.characteristic.pnp_id"),
    "2a51": KnownName("Glucose Feature", "org.bluetooth.characteristic.glucose_feature"),
    "2a52": KnownName("Record Access Control Point", "org.bluetooth.characteristic.record_access_control_point"),
    "2a53": KnownName("RSC Measurement", "org.bluetooth.characteristic.rsc_measurement"),
    "2a54": KnownName("RSC Feature", "org.bluetooth.characteristic.rsc_feature"),
    "2a55": KnownName("SC Control Point", "org.bluetooth.characteristic.sc_control_point"),
    "2a5b": KnownName("CSC Measurement", "org.bluetooth.characteristic.csc_measurement"),
    "2a5c": KnownName("CSC Feature", "org.bluetooth.characteristic.csc_feature"),
    "2a5d": KnownName("Sensor Location", "org.bluetooth.characteristic.sensor_location"),
}


def _lookup(table: dict[str, KnownName], uuid: object) -> str:
    entry = table.get(str(uuid).lower())
    return entry.name if entry else ""


def service_name(uuid: object) -> str:
    """Return the assigned name of a service UUID, or "" if unknown."""
    return _lookup(KNOWN_SERVICES, uuid)


def characteristic_name(uuid: object) -> str:
    """Return the assigned name of a characteristic UUID, or "" if unknown."""
    return _lookup(KNOWN_CHARACTERISTICS, uuid)


def descriptor_name(uuid: object) -> str:
    """Return the assigned name of a descriptor UUID, or "" if unknown."""
    return _lookup(KNOWN_DESCRIPTORS, uuid)


def attribute_name(uuid: object) -> str:
    """Return the assigned name of an attribute type UUID, or "" if unknown."""
    return _lookup(KNOWN_ATTRIBUTES, uuid)
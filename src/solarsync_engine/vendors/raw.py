"""Typed shapes of vendor-native API payloads.

Page envelopes keep their records as plain dicts so a single malformed
record can be rejected at normalization time without failing the page.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _VendorPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ── Solarman ──


class SolarmanTokenResponse(_VendorPayload):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    code: Optional[str] = None
    msg: Optional[str] = None
    success: Optional[bool] = None


class SolarmanStationPage(_VendorPayload):
    total: Optional[int] = None
    data: list[dict[str, Any]] = Field(default_factory=list)


class SolarmanStation(_VendorPayload):
    station_id: Union[int, str] = Field(alias="id")
    name: Optional[str] = None
    installed_capacity: Optional[float] = Field(default=None, alias="installedCapacity")
    location_lat: Optional[float] = Field(default=None, alias="locationLat")
    location_lng: Optional[float] = Field(default=None, alias="locationLng")
    location_address: Optional[str] = Field(default=None, alias="locationAddress")
    generation_power: Optional[float] = Field(default=None, alias="generationPower")
    generation_value: Optional[float] = Field(default=None, alias="generationValue")
    generation_month: Optional[float] = Field(default=None, alias="generationMonth")
    generation_year: Optional[float] = Field(default=None, alias="generationYear")
    generation_total: Optional[float] = Field(default=None, alias="generationTotal")
    generation_capacity: Optional[float] = Field(default=None, alias="generationCapacity")
    pr_yesterday: Optional[float] = Field(default=None, alias="prYesterday")
    network_status: Optional[str] = Field(default=None, alias="networkStatus")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")
    last_update_time: Optional[float] = Field(default=None, alias="lastUpdateTime")
    created_date: Optional[float] = Field(default=None, alias="createdDate")
    start_operating_time: Optional[float] = Field(default=None, alias="startOperatingTime")
    region_timezone: Optional[str] = Field(default=None, alias="regionTimezone")


class SolarmanAlertPage(_VendorPayload):
    total: Optional[int] = None
    data: list[dict[str, Any]] = Field(default_factory=list)


class SolarmanAlertRecord(_VendorPayload):
    alert_id: Union[int, str] = Field(alias="id")
    station_id: Optional[Union[int, str]] = Field(default=None, alias="stationId")
    alert_name: Optional[str] = Field(default=None, alias="alertName")
    level: Optional[int] = None
    influence: Optional[int] = None
    alert_time: Optional[float] = Field(default=None, alias="alertTime")
    end_time: Optional[float] = Field(default=None, alias="endTime")
    device_type: Optional[str] = Field(default=None, alias="deviceType")
    device_sn: Optional[str] = Field(default=None, alias="deviceSn")
    code: Optional[Union[int, str]] = None
    description: Optional[str] = None


class SolarmanHistoryItem(_VendorPayload):
    generation_power: Optional[float] = Field(default=None, alias="generationPower")
    generation_value: Optional[float] = Field(default=None, alias="generationValue")
    date_time: Optional[float] = Field(default=None, alias="dateTime")
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None


class SolarmanHistoryResponse(_VendorPayload):
    success: Optional[bool] = None
    msg: Optional[str] = None
    station_data_items: list[SolarmanHistoryItem] = Field(default_factory=list, alias="stationDataItems")


class SolarmanRealtimeResponse(_VendorPayload):
    success: Optional[bool] = None
    msg: Optional[str] = None
    generation_power: Optional[float] = Field(default=None, alias="generationPower")
    last_update_time: Optional[float] = Field(default=None, alias="lastUpdateTime")


class SolarmanDataItem(_VendorPayload):
    key: str
    value: Optional[str] = None
    unit: Optional[str] = None
    name: Optional[str] = None


class SolarmanDeviceDataResponse(_VendorPayload):
    success: Optional[bool] = None
    msg: Optional[str] = None
    device_id: Optional[int] = Field(default=None, alias="deviceId")
    device_sn: Optional[str] = Field(default=None, alias="deviceSn")
    collection_time: Optional[float] = Field(default=None, alias="collectionTime")
    connect_status: Optional[int] = Field(default=None, alias="connectStatus")
    data_list: list[SolarmanDataItem] = Field(default_factory=list, alias="dataList")


class SolarmanDeviceFrame(_VendorPayload):
    collect_time: float = Field(alias="collectTime")
    data_list: list[SolarmanDataItem] = Field(default_factory=list, alias="dataList")


class SolarmanDeviceHistoryResponse(_VendorPayload):
    success: Optional[bool] = None
    msg: Optional[str] = None
    param_data_list: list[SolarmanDeviceFrame] = Field(default_factory=list, alias="paramDataList")


# ── SolarDM ──


class SolarDmEnvelope(_VendorPayload):
    code: int = -1
    message: Optional[str] = None
    data: Any = None


class SolarDmTokenData(_VendorPayload):
    token: Optional[str] = None
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    token_head: Optional[str] = Field(default=None, alias="tokenHead")
    expires_in: Optional[int] = Field(default=None, alias="expiresIn")


class SolarDmPlantList(_VendorPayload):
    total: Optional[int] = None
    records: list[dict[str, Any]] = Field(default_factory=list, alias="list")


class SolarDmPlant(_VendorPayload):
    plant_id: Union[int, str] = Field(alias="id")
    plant_name: Optional[str] = Field(default=None, alias="plantName")
    address: Optional[str] = None
    capacity: Optional[Union[str, float]] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    communicate_status: Optional[int] = Field(default=None, alias="communicateStatus")
    alarm_status: Optional[int] = Field(default=None, alias="alarmStatus")
    owner_phone: Optional[str] = Field(default=None, alias="ownerPhone")
    create_time: Optional[str] = Field(default=None, alias="createTime")
    update_time: Optional[str] = Field(default=None, alias="updateTime")
    time_zone: Optional[float] = Field(default=None, alias="timeZone")


class SolarDmFaultPage(_VendorPayload):
    total: Optional[int] = None
    pages: Optional[int] = None
    records: list[dict[str, Any]] = Field(default_factory=list)


class SolarDmFaultRecord(_VendorPayload):
    fault_id: Union[int, str] = Field(alias="id")
    plant_id: Optional[Union[int, str]] = Field(default=None, alias="plantId")
    fault_info: Optional[str] = Field(default=None, alias="faultInfo")
    fault_info_en: Optional[str] = Field(default=None, alias="faultInfoEN")
    fault_level: Optional[int] = Field(default=None, alias="faultLevel")
    happen_time: Optional[str] = Field(default=None, alias="happenTime")
    recover_time: Optional[str] = Field(default=None, alias="recoverTime")
    device_sn: Optional[str] = Field(default=None, alias="deviceSn")
    device_type: Optional[str] = Field(default=None, alias="deviceType")


class SolarDmStatsItem(_VendorPayload):
    time: str
    generation_power: Optional[float] = Field(default=None, alias="generationPower")
    generation_energy: Optional[float] = Field(default=None, alias="generationEnergy")


class SolarDmStats(_VendorPayload):
    data_list: list[SolarDmStatsItem] = Field(default_factory=list, alias="dataList")

from typing import Dict, List

from core.domain import NoisePoint, ZoneCluster, ZoneResult


def query_echo(result: ZoneResult) -> Dict:
    params = result.params
    return {
        "center": {"lat": params.lat, "lng": params.lng},
        "radius": params.radius,
        "eps": params.eps,
        "minpoints": params.min_points,
        "maxPointsPerCluster": params.max_cluster_size,
    }


def build_statistics(result: ZoneResult) -> Dict:
    return {
        "total_points_in_range": result.total_points_in_range,
        "clusters_found": len(result.clusters),
        "noise_points": len(result.noise_points),
        "total_alpha_sum": result.total_alpha_sum,
        "clusters_alpha_sum": result.clusters_alpha_sum,
        "noise_alpha_sum": result.noise_alpha_sum,
    }


def cluster_to_dict(cluster: ZoneCluster) -> Dict:
    return {
        "cluster_id": str(cluster.cluster_id),
        "parent_cluster_id": cluster.cluster_id.parent,
        "group_index": cluster.cluster_id.group,
        "point_count": cluster.point_count,
        "alpha": cluster.alpha_sum,
        "lat": cluster.lat,
        "lng": cluster.lng,
        "risk_level": cluster.risk_level.value,
        "type_counts": dict(cluster.type_counts),
    }


def noise_to_dict(point: NoisePoint) -> Dict:
    return {
        "id": point.id,
        "lat": point.lat,
        "lng": point.lng,
        "alpha": point.alpha,
        "type": point.category.value,
    }


def build_feature_collection(result: ZoneResult) -> Dict:
    features: List[Dict] = []
    for cluster in result.clusters:
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [cluster.lng, cluster.lat]},
                "properties": {
                    "type": "cluster",
                    "cluster_id": str(cluster.cluster_id),
                    "alpha": cluster.alpha_sum,
                    "risk_level": cluster.risk_level.value,
                    "point_count": cluster.point_count,
                    "type_counts": dict(cluster.type_counts),
                },
            }
        )
    for point in result.noise_points:
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [point.lng, point.lat]},
                "properties": {
                    "type": "noise",
                    "id": point.id,
                    "alpha": point.alpha,
                    "point_type": point.category.value,
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}


def assemble_zone_response(result: ZoneResult) -> Dict:
    return {
        "query": query_echo(result),
        "statistics": build_statistics(result),
        "clusters": [cluster_to_dict(c) for c in result.clusters],
        "noise_points": [noise_to_dict(p) for p in result.noise_points],
        "geojson": build_feature_collection(result),
    }

import os
import argparse
import yaml


def find_jobs(data_dir: str) -> dict:
    """
    Every .fdf file directly in data_dir is one job; every subdirectory
    holding .fdf slices (e.g. VnmrJ *.img folders) is one job as well.
    """
    jobs = {}
    for entry in sorted(os.listdir(data_dir)):
        path = os.path.join(data_dir, entry)
        if os.path.isfile(path) and entry.endswith(('.fdf', '.FDF')):
            jobs[os.path.splitext(entry)[0]] = path
        elif os.path.isdir(path) and any(f.endswith(('.fdf', '.FDF')) for f in os.listdir(path)):
            jobs[os.path.splitext(entry)[0]] = path
    return jobs


def generate_config(data_dir: str, output_dir: str, config_yaml: str, overview: bool = False) -> dict:
    config = {}
    for job_id, input_path in find_jobs(data_dir).items():
        config[job_id] = {
            'input_path': input_path,
            'output_dir': output_dir,
            'output_format': 'mha',
            'compression': True,
            'overview': overview,
        }

    with open(config_yaml, 'w') as f:
        yaml.dump(config, f)
    return config


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a conversion config for a directory of FDF data.")
    parser.add_argument('data_dir', type=str, help='Directory with .fdf files or FDF slice directories.')
    parser.add_argument('-output_dir', '-o', type=str, required=True, help='Directory for converted images.')
    parser.add_argument('-config_yaml', '-c', type=str, default='configs/fdf_config.yaml', help='Config file to write.')
    parser.add_argument('--overview', action='store_true', help='Also write an overview PNG per job.')
    args = parser.parse_args()
    generate_config(args.data_dir, args.output_dir, args.config_yaml, args.overview)

"""
nzcensus_pipeline.pipelines — End-to-end pipeline orchestrators.

The pipeline module exports a run() async function that accepts override
kwargs and returns a PipelineResult.

    from nzcensus_pipeline.pipelines import region_density

    result = await region_density.run(measure="female_density_2013")
"""
